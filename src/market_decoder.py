"""
Market decoding from ConditionPreparation records

Recomputes the conditionId and derives the YES/NO outcome token IDs. When the
recomputed conditionId differs from the logged one a warning is logged and
decoding continues:

- scan mode (range scans, tx lookups) trusts the recomputed ID
- manual mode (user supplied the conditionId) trusts the supplied ID
"""
import logging
from typing import Iterable, List, Optional

from hexbytes import HexBytes
from web3 import Web3

from ctf_ids import derive_binary_positions, get_condition_id
from models import ConditionRecord, MarketInfo

logger = logging.getLogger(__name__)


def _hex32(value) -> str:
    return Web3.to_hex(HexBytes(value))


class MarketDecoder:
    """Decode ConditionPreparation records into MarketInfo"""

    def __init__(self, collateral_token: str):
        """
        Args:
            collateral_token: Collateral ERC-20 backing every position (USDC.e on Polygon)
        """
        self.collateral_token = collateral_token.lower()

    def decode(self, record: ConditionRecord, supplied_condition_id: Optional[str] = None) -> MarketInfo:
        """
        Decode one condition

        Args:
            record: Decoded ConditionPreparation log
            supplied_condition_id: conditionId entered by the user (manual mode);
                None selects scan mode

        Returns:
            MarketInfo
        """
        computed = _hex32(get_condition_id(
            record.oracle_address, record.question_id, record.outcome_slot_count
        ))
        logged = _hex32(record.condition_id)

        if computed != logged:
            logger.warning(f"Calculated condition ID mismatch: logged {logged}, calculated {computed}")

        if supplied_condition_id is not None:
            trusted = _hex32(supplied_condition_id)
            if trusted != computed:
                logger.warning(
                    f"Supplied condition ID {trusted} differs from calculated {computed}, using supplied"
                )
        else:
            trusted = computed

        positions = derive_binary_positions(trusted, self.collateral_token)

        return MarketInfo(
            condition_id=trusted,
            question_id=_hex32(record.question_id),
            oracle=record.oracle_address.lower(),
            outcome_slot_count=record.outcome_slot_count,
            collateral_token=self.collateral_token,
            yes_token_id=_hex32(positions.position_yes),
            no_token_id=_hex32(positions.position_no),
        )

    def decode_all(self, records: Iterable[ConditionRecord]) -> List[MarketInfo]:
        """Decode a batch in scan mode"""
        return [self.decode(record) for record in records]
