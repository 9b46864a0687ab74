"""Turn decoded fills plus resolved decimals into trade records"""
from typing import Iterable, List

from decimals_resolver import MAKER, TAKER, ResolutionResult
from models import RawFillLog, TradeRecord, TradeSide


def format_asset_id(asset_id: int) -> str:
    """The collateral sentinel displays as "0", anything else as lowercase hex"""
    return "0" if asset_id == 0 else hex(asset_id)


# Largest power of ten that fits in a uint256
MAX_DECIMALS = 77


def to_human(amount: int, decimals: int) -> float:
    """Scale a raw amount by its decimals; unrepresentable scales read as 0.0"""
    if decimals > MAX_DECIMALS:
        return 0.0
    return amount / (10 ** decimals)


def calculate_price(numerator: int, numerator_decimals: int, denominator: int, denominator_decimals: int) -> str:
    """
    Price as numerator units per denominator unit, with 6 fractional digits

    Returns "0.0" when the denominator is zero.
    """
    denominator_human = to_human(denominator, denominator_decimals)
    if denominator_human == 0.0:
        return "0.0"
    return f"{to_human(numerator, numerator_decimals) / denominator_human:.6f}"


def classify_trade(fill: RawFillLog, maker_decimals: int, taker_decimals: int) -> TradeRecord:
    """
    Classify one fill as BUY or SELL and price it in collateral per outcome token

    Args:
        fill: Decoded OrderFilled record
        maker_decimals: Resolved decimals of the maker asset
        taker_decimals: Resolved decimals of the taker asset

    Returns:
        TradeRecord
    """
    if fill.maker_asset_id == 0:
        # Maker pays collateral, receives outcome tokens
        side = TradeSide.BUY
        token_id = fill.taker_asset_id
        price = calculate_price(fill.maker_amount, maker_decimals, fill.taker_amount, taker_decimals)
    elif fill.taker_asset_id == 0:
        # Maker gives outcome tokens, receives collateral
        side = TradeSide.SELL
        token_id = fill.maker_asset_id
        price = calculate_price(fill.taker_amount, taker_decimals, fill.maker_amount, maker_decimals)
    else:
        # No collateral leg; price follows the maker leg
        side = TradeSide.SELL
        token_id = fill.maker_asset_id
        price = calculate_price(fill.maker_amount, maker_decimals, fill.taker_amount, taker_decimals)

    return TradeRecord(
        tx_hash=fill.tx_hash,
        log_index=fill.log_index,
        exchange=fill.contract_address,
        maker=fill.maker_addr,
        taker=fill.taker_addr,
        maker_asset_id=format_asset_id(fill.maker_asset_id),
        taker_asset_id=format_asset_id(fill.taker_asset_id),
        maker_amount_raw=str(fill.maker_amount),
        taker_amount_raw=str(fill.taker_amount),
        maker_decimals=maker_decimals,
        taker_decimals=taker_decimals,
        price=price,
        token_id=format_asset_id(token_id),
        side=side,
    )


def classify_trades(fills: Iterable[RawFillLog], resolution: ResolutionResult) -> List[TradeRecord]:
    return [
        classify_trade(fill, resolution.decimals_for(fill, MAKER), resolution.decimals_for(fill, TAKER))
        for fill in fills
    ]
