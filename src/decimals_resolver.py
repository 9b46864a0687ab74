"""
ERC-20 decimals resolution for OrderFilled asset IDs

An asset ID is either 0 (the collateral), an address left-padded to 256 bits,
or an opaque ERC-1155 position ID. The only way to tell is to ask the chain,
so resolution runs in phases over a whole batch of fills:

    1. collect the low 160 bits of every non-zero asset ID as a candidate address
    2. probe decimals() on each distinct candidate
    3. mark the transactions of legs whose candidate failed
    4. scan those receipts for ERC-20 Transfer logs (value -> token address)
    5. resolve remaining legs by matching their fill amount to a Transfer value
    6. fall back to 6 decimals for the collateral and 18 for anything else
"""
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError

from errors import TransportError
from event_decoder import ERC20_TRANSFER_TOPIC, has_topic0, read_word
from models import RawFillLog

logger = logging.getLogger(__name__)

DECIMALS_SELECTOR = "0x313ce567"  # decimals()

COLLATERAL_DECIMALS = 6
DEFAULT_DECIMALS = 18

MAKER = 'maker'
TAKER = 'taker'

COLLISION_KEEP_LAST = 'last'
COLLISION_KEEP_FIRST = 'first'

_ADDRESS_MASK = (1 << 160) - 1

LegKey = Tuple[Optional[str], int, str]


def asset_id_to_address(asset_id: int) -> str:
    """Interpret the low 160 bits of an asset ID as an address"""
    return Web3.to_hex((asset_id & _ADDRESS_MASK).to_bytes(20, 'big'))


@dataclass(frozen=True)
class Leg:
    """One side (maker or taker) of a fill"""
    tx_hash: Optional[str]
    log_index: int
    role: str
    asset_id: int
    amount: int

    @property
    def key(self) -> LegKey:
        return (self.tx_hash, self.log_index, self.role)

    @property
    def candidate_address(self) -> str:
        return asset_id_to_address(self.asset_id)

    @classmethod
    def from_fill(cls, fill: RawFillLog, role: str) -> "Leg":
        if role == MAKER:
            return cls(fill.tx_hash, fill.log_index, role, fill.maker_asset_id, fill.maker_amount)
        return cls(fill.tx_hash, fill.log_index, role, fill.taker_asset_id, fill.taker_amount)


@dataclass(frozen=True)
class Resolved:
    decimals: int
    source: str  # collateral | address | receipt


@dataclass(frozen=True)
class Unresolved:
    leg: Leg


AssetResolution = Union[Resolved, Unresolved]


@dataclass(frozen=True)
class ResolutionResult:
    """Immutable outcome of one resolution batch"""
    decimals_cache: Mapping[str, int]
    receipt_transfers: Mapping[str, Mapping[int, str]]
    legs: Mapping[LegKey, AssetResolution]
    collateral_decimals: int = COLLATERAL_DECIMALS
    default_decimals: int = DEFAULT_DECIMALS

    def decimals_for(self, fill: RawFillLog, role: str) -> int:
        """Decimals of one leg of a fill, applying the defaults when unresolved"""
        leg = Leg.from_fill(fill, role)
        if leg.asset_id == 0:
            return self.collateral_decimals
        resolution = self.legs.get(leg.key)
        if isinstance(resolution, Resolved):
            return resolution.decimals
        return self.default_decimals


@dataclass
class ResolutionContext:
    """Mutable state threaded through the phases of one batch"""
    candidates: Dict[str, None] = field(default_factory=dict)  # insertion-ordered set
    decimals_cache: Dict[str, int] = field(default_factory=dict)
    receipt_transfers: Dict[str, Dict[int, str]] = field(default_factory=dict)
    legs: Dict[LegKey, AssetResolution] = field(default_factory=dict)

    def freeze(self, collateral_decimals: int, default_decimals: int) -> ResolutionResult:
        return ResolutionResult(
            decimals_cache=MappingProxyType(dict(self.decimals_cache)),
            receipt_transfers=MappingProxyType({
                tx: MappingProxyType(dict(transfers))
                for tx, transfers in self.receipt_transfers.items()
            }),
            legs=MappingProxyType(dict(self.legs)),
            collateral_decimals=collateral_decimals,
            default_decimals=default_decimals,
        )


class TokenDecimalResolver:
    """Resolve ERC-20 decimals for every leg of a batch of fills"""

    def __init__(
        self,
        rpc,
        collateral_decimals: int = COLLATERAL_DECIMALS,
        default_decimals: int = DEFAULT_DECIMALS,
        collision_policy: str = COLLISION_KEEP_LAST
    ):
        """
        Initialize the resolver

        Args:
            rpc: RPC client exposing call() and get_transaction_receipt()
            collateral_decimals: Decimals of the collateral (asset ID 0)
            default_decimals: Decimals used when no phase resolves an asset
            collision_policy: Which Transfer wins when two in one transaction
                carry the same value: 'last' (later log overwrites) or 'first'
        """
        if collision_policy not in (COLLISION_KEEP_LAST, COLLISION_KEEP_FIRST):
            raise ValueError(f"Unknown transfer collision policy: {collision_policy}")

        self.rpc = rpc
        self.collateral_decimals = collateral_decimals
        self.default_decimals = default_decimals
        self.collision_policy = collision_policy

    def resolve(self, fills: Iterable[RawFillLog]) -> ResolutionResult:
        """
        Run all resolution phases over a batch of fills

        Args:
            fills: Decoded OrderFilled records

        Returns:
            ResolutionResult: frozen cache, receipt maps and per-leg results
        """
        ctx = ResolutionContext()

        pending = self._collect(fills, ctx)
        self._probe_candidates(ctx)
        pending = self._resolve_from_cache(pending, ctx)

        if pending:
            targets = self._fallback_targets(pending)
            logger.debug(f"{len(pending)} legs unresolved after direct probe, scanning {len(targets)} receipts")
            self._scan_receipts(targets, ctx)
            pending = self._resolve_from_receipts(pending, ctx)

        for unresolved in pending:
            logger.debug(
                f"Asset {hex(unresolved.leg.asset_id)[:18]}... unresolved, "
                f"defaulting to {self.default_decimals} decimals"
            )

        return ctx.freeze(self.collateral_decimals, self.default_decimals)

    def _collect(self, fills: Iterable[RawFillLog], ctx: ResolutionContext) -> List[Unresolved]:
        pending = []
        for fill in fills:
            for role in (MAKER, TAKER):
                leg = Leg.from_fill(fill, role)
                if leg.asset_id == 0:
                    ctx.legs[leg.key] = Resolved(self.collateral_decimals, 'collateral')
                    continue
                ctx.candidates.setdefault(leg.candidate_address, None)
                unresolved = Unresolved(leg)
                ctx.legs[leg.key] = unresolved
                pending.append(unresolved)
        return pending

    def _probe_candidates(self, ctx: ResolutionContext):
        for address in ctx.candidates:
            self._probe(address, ctx)

    def _resolve_from_cache(self, pending: List[Unresolved], ctx: ResolutionContext) -> List[Unresolved]:
        remaining = []
        for unresolved in pending:
            decimals = ctx.decimals_cache.get(unresolved.leg.candidate_address)
            if decimals is None:
                remaining.append(unresolved)
            else:
                ctx.legs[unresolved.leg.key] = Resolved(decimals, 'address')
        return remaining

    @staticmethod
    def _fallback_targets(pending: List[Unresolved]) -> List[str]:
        targets = {}
        for unresolved in pending:
            if unresolved.leg.tx_hash:
                targets.setdefault(unresolved.leg.tx_hash, None)
        return list(targets)

    def _scan_receipts(self, tx_hashes: List[str], ctx: ResolutionContext):
        for tx_hash in tx_hashes:
            try:
                receipt = self.rpc.get_transaction_receipt(tx_hash)
            except TransportError as e:
                logger.warning(f"Could not fetch receipt {tx_hash[:10]}... for decimals lookup: {e}")
                continue
            if receipt is None:
                logger.warning(f"Receipt {tx_hash[:10]}... not found for decimals lookup")
                continue
            ctx.receipt_transfers[tx_hash] = self.transfer_value_map(receipt.get('logs', []), tx_hash)

    def transfer_value_map(self, logs: Iterable[Mapping], tx_hash: str = '') -> Dict[int, str]:
        """
        Map ERC-20 Transfer values to the emitting token contract

        Only one token survives per value; the collision policy picks which.

        Args:
            logs: Receipt logs
            tx_hash: Transaction hash, for log messages

        Returns:
            dict: value -> lowercase token address
        """
        transfers: Dict[int, str] = {}
        for log in logs:
            if not has_topic0(log, ERC20_TRANSFER_TOPIC) or len(log['topics']) != 3:
                continue
            value = read_word(bytes(HexBytes(log.get('data') or b'')), 0)
            token = str(log['address']).lower()

            existing = transfers.get(value)
            if existing is not None and existing != token:
                kept = existing if self.collision_policy == COLLISION_KEEP_FIRST else token
                logger.warning(
                    f"Transfer value collision in {tx_hash[:10]}...: {value} emitted by "
                    f"{existing} and {token}, keeping {kept}"
                )
                if self.collision_policy == COLLISION_KEEP_FIRST:
                    continue
            transfers[value] = token
        return transfers

    def _resolve_from_receipts(self, pending: List[Unresolved], ctx: ResolutionContext) -> List[Unresolved]:
        remaining = []
        for unresolved in pending:
            leg = unresolved.leg

            # An earlier leg may have cached this candidate through its receipt
            decimals = ctx.decimals_cache.get(leg.candidate_address)
            if decimals is not None:
                ctx.legs[leg.key] = Resolved(decimals, 'address')
                continue

            token = ctx.receipt_transfers.get(leg.tx_hash, {}).get(leg.amount)
            decimals = self._probe(token, ctx) if token else None
            if decimals is None:
                remaining.append(unresolved)
            else:
                ctx.legs[leg.key] = Resolved(decimals, 'receipt')
        return remaining

    def _probe(self, address: str, ctx: ResolutionContext) -> Optional[int]:
        """
        Return decimals() of address, using the batch cache when possible

        Failures are not cached; they mean the address is not an ERC-20 token.
        """
        if address in ctx.decimals_cache:
            return ctx.decimals_cache[address]

        try:
            result = self.rpc.call(address, DECIMALS_SELECTOR)
        except (TransportError, ContractLogicError) as e:
            logger.debug(f"decimals() failed for {address}: {e}")
            return None

        if len(result) < 32:
            logger.debug(f"decimals() on {address} returned {len(result)} bytes")
            return None

        decimals = read_word(result, 0) & 0xFFFFFFFF
        ctx.decimals_cache[address] = decimals
        return decimals
