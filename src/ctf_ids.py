"""
Conditional Tokens Framework identifier derivation

conditionId -> collectionId -> positionId, each a keccak256 over the
word-aligned ABI encoding of its inputs (abi.encode, not abi.encodePacked).
Pure functions: no network access, no state.
"""
from dataclasses import dataclass
from typing import Union

from eth_abi import encode
from hexbytes import HexBytes
from web3 import Web3

HexLike = Union[str, bytes]

ZERO_COLLECTION_ID = HexBytes(b'\x00' * 32)

# Binary market outcome slots
INDEX_SET_YES = 1
INDEX_SET_NO = 2


def _bytes32(value: HexLike) -> bytes:
    return bytes(HexBytes(value))


def _address(value: HexLike) -> str:
    return Web3.to_checksum_address(value)


def get_condition_id(oracle: HexLike, question_id: HexLike, outcome_slot_count: int) -> HexBytes:
    """
    Compute the conditionId of (oracle, questionId, outcomeSlotCount)

    Args:
        oracle: Oracle address
        question_id: 32-byte question identifier
        outcome_slot_count: Number of outcome slots

    Returns:
        HexBytes: 32-byte condition ID
    """
    encoded = encode(
        ['address', 'bytes32', 'uint256'],
        [_address(oracle), _bytes32(question_id), int(outcome_slot_count)]
    )
    return Web3.keccak(encoded)


def get_collection_id(parent_collection_id: HexLike, condition_id: HexLike, index_set: int) -> HexBytes:
    """
    Compute the collectionId of an outcome subset of a condition

    Args:
        parent_collection_id: Parent collection (zero for top-level positions)
        condition_id: 32-byte condition ID
        index_set: Bitmask of outcome slots (1 = YES, 2 = NO for binary markets)

    Returns:
        HexBytes: 32-byte collection ID
    """
    encoded = encode(
        ['bytes32', 'bytes32', 'uint256'],
        [_bytes32(parent_collection_id), _bytes32(condition_id), int(index_set)]
    )
    return Web3.keccak(encoded)


def get_position_id(collateral_token: HexLike, collection_id: HexLike) -> HexBytes:
    """
    Compute the positionId (ERC-1155 token ID) of a collection backed by collateral

    Args:
        collateral_token: Collateral ERC-20 address
        collection_id: 32-byte collection ID

    Returns:
        HexBytes: 32-byte position ID
    """
    collection_as_uint = int.from_bytes(_bytes32(collection_id), 'big')
    encoded = encode(['address', 'uint256'], [_address(collateral_token), collection_as_uint])
    return Web3.keccak(encoded)


@dataclass(frozen=True)
class BinaryPositions:
    collection_id_yes: HexBytes
    collection_id_no: HexBytes
    position_yes: HexBytes
    position_no: HexBytes


def derive_binary_positions(condition_id: HexLike, collateral_token: HexLike) -> BinaryPositions:
    """Derive YES/NO collection and position IDs for a top-level binary condition"""
    collection_yes = get_collection_id(ZERO_COLLECTION_ID, condition_id, INDEX_SET_YES)
    collection_no = get_collection_id(ZERO_COLLECTION_ID, condition_id, INDEX_SET_NO)
    return BinaryPositions(
        collection_id_yes=collection_yes,
        collection_id_no=collection_no,
        position_yes=get_position_id(collateral_token, collection_yes),
        position_no=get_position_id(collateral_token, collection_no),
    )
