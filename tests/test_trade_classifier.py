from chain_fixtures import CTF_EXCHANGE, MAKER, POSITION_ID, TAKER, order_filled_log, tx
from event_decoder import decode_order_filled
from models import TradeSide
from trade_classifier import calculate_price, classify_trade, format_asset_id, to_human


def fill(maker_asset_id, taker_asset_id, maker_amount, taker_amount):
    return decode_order_filled(
        order_filled_log(tx(9), 3, maker_asset_id, taker_asset_id, maker_amount, taker_amount)
    )


def test_buy_price_in_collateral_per_token():
    trade = classify_trade(fill(0, POSITION_ID, 1_000_000, 500_000_000_000_000_000), 6, 18)

    assert trade.side == TradeSide.BUY
    assert trade.price == "2.000000"
    assert trade.token_id == hex(POSITION_ID)
    assert trade.maker_asset_id == "0"
    assert trade.taker_asset_id == hex(POSITION_ID)


def test_sell_price_uses_taker_leg_as_collateral():
    trade = classify_trade(fill(POSITION_ID, 0, 4_000_000, 1_000_000), 6, 6)

    assert trade.side == TradeSide.SELL
    assert trade.price == "0.250000"
    assert trade.token_id == hex(POSITION_ID)
    assert trade.taker_asset_id == "0"


def test_zero_divisor_price():
    assert classify_trade(fill(0, POSITION_ID, 1_000_000, 0), 6, 18).price == "0.0"
    assert classify_trade(fill(POSITION_ID, 0, 0, 1_000_000), 18, 6).price == "0.0"


def test_two_token_legs_follow_maker_convention():
    other = POSITION_ID - 1
    trade = classify_trade(fill(POSITION_ID, other, 3_000_000, 1_000_000), 6, 6)

    assert trade.side == TradeSide.SELL
    assert trade.price == "3.000000"
    assert trade.token_id == hex(POSITION_ID)


def test_both_legs_zero_is_buy():
    trade = classify_trade(fill(0, 0, 1, 1), 6, 6)

    assert trade.side == TradeSide.BUY
    assert trade.token_id == "0"


def test_price_has_six_fractional_digits():
    assert calculate_price(1, 6, 3, 6) == "0.333333"
    assert calculate_price(2, 0, 1, 0) == "2.000000"


def test_format_asset_id():
    assert format_asset_id(0) == "0"
    assert format_asset_id(255) == "0xff"


def test_trade_record_serializes_in_field_order():
    trade = classify_trade(fill(0, POSITION_ID, 1_000_000, 2_000_000), 6, 6)

    data = trade.to_dict()

    assert list(data) == [
        'txHash', 'logIndex', 'exchange', 'maker', 'taker', 'makerAssetId', 'takerAssetId',
        'makerAmountRaw', 'takerAmountRaw', 'makerDecimals', 'takerDecimals', 'price', 'tokenId', 'side',
    ]
    assert data['side'] == "BUY"
    assert data['txHash'] == tx(9)
    assert data['logIndex'] == 3
    assert data['exchange'] == CTF_EXCHANGE
    assert data['maker'] == MAKER
    assert data['taker'] == TAKER
    assert data['makerAmountRaw'] == "1000000"


def test_oversized_decimals_read_as_zero():
    assert to_human(10 ** 78, 77) == 10.0
    assert to_human(1_000_000, 78) == 0.0
    assert to_human(1_000_000, 2 ** 256 - 1) == 0.0


def test_oversized_decimals_price():
    assert classify_trade(fill(0, POSITION_ID, 1_000_000, 2_000_000), 6, 0xFFFFFFFF).price == "0.0"
    assert classify_trade(fill(POSITION_ID, 0, 2_000_000, 1_000_000), 0xFFFFFFFF, 6).price == "0.0"
