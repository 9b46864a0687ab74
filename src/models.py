"""
Record types produced by the decoding pipeline

Output records serialize to ordered dictionaries with lowerCamelCase keys,
which is the shape written by the CLI.
"""
from collections import OrderedDict
from dataclasses import dataclass, fields
from enum import Enum
from typing import Optional


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    UNKNOWN = "UNKNOWN"


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


class _Serializable:
    """Mixin turning a dataclass into an ordered lowerCamelCase mapping"""

    def to_dict(self) -> "OrderedDict[str, object]":
        out = OrderedDict()
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            out[_camel(f.name)] = value
        return out


@dataclass(frozen=True)
class RawFillLog:
    """One decoded OrderFilled log, before decimals are known"""
    tx_hash: str
    log_index: int
    block_number: Optional[int]
    contract_address: str
    order_hash: str
    maker_addr: str
    taker_addr: str
    maker_asset_id: int
    taker_asset_id: int
    maker_amount: int
    taker_amount: int
    fee: Optional[int] = None


@dataclass(frozen=True)
class TradeRecord(_Serializable):
    tx_hash: str
    log_index: int
    exchange: str
    maker: str
    taker: str
    maker_asset_id: str
    taker_asset_id: str
    maker_amount_raw: str
    taker_amount_raw: str
    maker_decimals: int
    taker_decimals: int
    price: str
    token_id: str
    side: TradeSide


@dataclass(frozen=True)
class ConditionRecord:
    """One decoded ConditionPreparation log"""
    condition_id: str
    oracle_address: str
    question_id: str
    outcome_slot_count: int
    tx_hash: Optional[str] = None
    log_index: Optional[int] = None
    block_number: Optional[int] = None


@dataclass(frozen=True)
class MarketInfo(_Serializable):
    condition_id: str
    question_id: str
    oracle: str
    outcome_slot_count: int
    collateral_token: str
    yes_token_id: str
    no_token_id: str
