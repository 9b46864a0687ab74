"""Helper module for decoding exchange and conditional-token events from raw logs"""
import logging
from typing import Iterable, List, Mapping, Optional

from hexbytes import HexBytes
from web3 import Web3

from errors import MalformedLogError
from models import ConditionRecord, RawFillLog

logger = logging.getLogger(__name__)

# event OrderFilled(bytes32 indexed orderHash, address indexed maker, address indexed taker,
#                   uint256 makerAssetId, uint256 takerAssetId, uint256 makerAmountFilled,
#                   uint256 takerAmountFilled, uint256 fee)
ORDER_FILLED_SIGNATURE = "OrderFilled(bytes32,address,address,uint256,uint256,uint256,uint256,uint256)"

# event ConditionPreparation(bytes32 indexed conditionId, address indexed oracle,
#                            bytes32 indexed questionId, uint256 outcomeSlotCount)
CONDITION_PREPARATION_SIGNATURE = "ConditionPreparation(bytes32,address,bytes32,uint256)"

ERC20_TRANSFER_SIGNATURE = "Transfer(address,address,uint256)"

ORDER_FILLED_TOPIC = Web3.keccak(text=ORDER_FILLED_SIGNATURE)
CONDITION_PREPARATION_TOPIC = Web3.keccak(text=CONDITION_PREPARATION_SIGNATURE)
ERC20_TRANSFER_TOPIC = Web3.keccak(text=ERC20_TRANSFER_SIGNATURE)

WORD_SIZE = 32
ORDER_FILLED_MIN_DATA = 4 * WORD_SIZE


def read_word(data: bytes, index: int) -> int:
    """Read the index-th 32-byte big-endian unsigned integer from data"""
    start = index * WORD_SIZE
    return int.from_bytes(data[start:start + WORD_SIZE], 'big')


def topic_to_address(topic) -> str:
    """Extract the address held in the low 20 bytes of an indexed topic"""
    return Web3.to_hex(HexBytes(topic)[-20:])


def to_hex(value) -> Optional[str]:
    if value is None:
        return None
    return Web3.to_hex(HexBytes(value))


def has_topic0(log: Mapping, topic: bytes) -> bool:
    topics = log.get('topics') or []
    return bool(topics) and HexBytes(topics[0]) == topic


def decode_order_filled(log: Mapping) -> RawFillLog:
    """
    Decode a single OrderFilled log

    Args:
        log: Log entry from eth_getLogs or a transaction receipt

    Returns:
        RawFillLog with maker/taker from topics 2/3 and the four leading data words

    Raises:
        MalformedLogError: data shorter than 128 bytes or fewer than 4 topics
    """
    data = bytes(HexBytes(log.get('data') or b''))
    topics = log.get('topics') or []

    if len(data) < ORDER_FILLED_MIN_DATA:
        raise MalformedLogError(f"OrderFilled data too short: {len(data)} bytes")
    if len(topics) < 4:
        raise MalformedLogError(f"OrderFilled has {len(topics)} topics, expected 4")

    return RawFillLog(
        tx_hash=to_hex(log.get('transactionHash')),
        log_index=int(log.get('logIndex') or 0),
        block_number=log.get('blockNumber'),
        contract_address=str(log.get('address', '')).lower(),
        order_hash=to_hex(topics[1]),
        maker_addr=topic_to_address(topics[2]),
        taker_addr=topic_to_address(topics[3]),
        maker_asset_id=read_word(data, 0),
        taker_asset_id=read_word(data, 1),
        maker_amount=read_word(data, 2),
        taker_amount=read_word(data, 3),
        fee=read_word(data, 4) if len(data) >= 5 * WORD_SIZE else None,
    )


def decode_condition_preparation(log: Mapping) -> ConditionRecord:
    """
    Decode a single ConditionPreparation log

    Raises:
        MalformedLogError: fewer than 4 topics or no outcomeSlotCount word
    """
    topics = log.get('topics') or []
    data = bytes(HexBytes(log.get('data') or b''))

    if len(topics) < 4:
        raise MalformedLogError(f"ConditionPreparation has {len(topics)} topics, expected 4")
    if not data:
        raise MalformedLogError("ConditionPreparation carries no outcomeSlotCount")

    return ConditionRecord(
        condition_id=to_hex(topics[1]),
        oracle_address=topic_to_address(topics[2]),
        question_id=to_hex(topics[3]),
        outcome_slot_count=read_word(data, 0),
        tx_hash=to_hex(log.get('transactionHash')),
        log_index=log.get('logIndex'),
        block_number=log.get('blockNumber'),
    )


def decode_order_filled_logs(logs: Iterable[Mapping]) -> List[RawFillLog]:
    """Decode a batch of OrderFilled logs, skipping malformed ones"""
    fills = []
    for log in logs:
        try:
            fills.append(decode_order_filled(log))
        except MalformedLogError as e:
            logger.debug(f"Skipping log {to_hex(log.get('transactionHash'))}:{log.get('logIndex')}: {e}")
    return fills


def decode_condition_logs(logs: Iterable[Mapping]) -> List[ConditionRecord]:
    """Decode a batch of ConditionPreparation logs, skipping malformed ones"""
    conditions = []
    for log in logs:
        try:
            conditions.append(decode_condition_preparation(log))
        except MalformedLogError as e:
            logger.debug(f"Skipping log {to_hex(log.get('transactionHash'))}:{log.get('logIndex')}: {e}")
    return conditions
