"""
Point-in-time scanner for Polymarket OrderFilled and ConditionPreparation events
"""
import logging
from typing import Dict, List, Mapping, Optional

from hexbytes import HexBytes
from web3 import Web3

from decimals_resolver import COLLATERAL_DECIMALS, COLLISION_KEEP_LAST, DEFAULT_DECIMALS, TokenDecimalResolver
from errors import ReceiptNotFoundError
from event_decoder import (
    CONDITION_PREPARATION_TOPIC,
    ORDER_FILLED_TOPIC,
    decode_condition_logs,
    decode_order_filled_logs,
    has_topic0,
)
from market_decoder import MarketDecoder
from models import MarketInfo, TradeRecord
from trade_classifier import classify_trades

logger = logging.getLogger(__name__)


class PolymarketScanner:
    """Fetch events over RPC and run them through the decoding pipeline"""

    # Polymarket contracts on Polygon
    CTF_EXCHANGE = "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E"
    NEG_RISK_CTF_EXCHANGE = "0xC5d563A36AE78145C45a50134d48A1215220f80a"
    CONDITIONAL_TOKENS = "0x4D97DCd97eC945f40cF65F87097ACe5EA0476045"
    USDC_E = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"

    def __init__(self, rpc_manager, config: Optional[Dict] = None):
        """
        Initialize scanner

        Args:
            rpc_manager: RPC client exposing get_logs, get_transaction_receipt and call
            config: Optional dict with 'contracts' and 'resolver' sections
        """
        config = config or {}
        contracts = config.get('contracts') or {}
        resolver_config = config.get('resolver') or {}

        self.rpc_manager = rpc_manager
        self.exchanges = [
            Web3.to_checksum_address(addr)
            for addr in contracts.get('exchanges') or [self.CTF_EXCHANGE, self.NEG_RISK_CTF_EXCHANGE]
        ]
        self.conditional_tokens = Web3.to_checksum_address(
            contracts.get('conditional_tokens', self.CONDITIONAL_TOKENS)
        )
        self.collateral_token = contracts.get('collateral_token', self.USDC_E)

        self.resolver_settings = {
            'collateral_decimals': resolver_config.get('collateral_decimals', COLLATERAL_DECIMALS),
            'default_decimals': resolver_config.get('default_decimals', DEFAULT_DECIMALS),
            'collision_policy': resolver_config.get('transfer_collision', COLLISION_KEEP_LAST),
        }
        self.market_decoder = MarketDecoder(self.collateral_token)

        logger.debug(f"Exchanges: {', '.join(self.exchanges)}")
        logger.debug(f"Conditional tokens: {self.conditional_tokens}")
        logger.debug(f"Collateral token: {self.collateral_token}")

    def _new_resolver(self) -> TokenDecimalResolver:
        # Fresh decimals cache per batch
        return TokenDecimalResolver(self.rpc_manager, **self.resolver_settings)

    def _require_receipt(self, tx_hash: str) -> Mapping:
        receipt = self.rpc_manager.get_transaction_receipt(tx_hash)
        if receipt is None:
            raise ReceiptNotFoundError(tx_hash)
        return receipt

    def process_logs(self, logs: List[Mapping]) -> List[TradeRecord]:
        """
        Decode OrderFilled logs, resolve decimals for the whole batch, classify

        Args:
            logs: OrderFilled logs

        Returns:
            List of TradeRecord, one per well-formed log
        """
        fills = decode_order_filled_logs(logs)
        if len(fills) < len(logs):
            logger.debug(f"Dropped {len(logs) - len(fills)} malformed OrderFilled logs")
        if not fills:
            return []

        resolution = self._new_resolver().resolve(fills)
        return classify_trades(fills, resolution)

    def fetch_events(self, from_block: int, to_block: int) -> List[TradeRecord]:
        """
        Scan a block range for OrderFilled events

        Args:
            from_block: First block (inclusive)
            to_block: Last block (inclusive)

        Returns:
            List of TradeRecord
        """
        logger.info(f"Scanning blocks {from_block:,} to {to_block:,} for OrderFilled events")
        logs = self.rpc_manager.get_logs({
            'fromBlock': from_block,
            'toBlock': to_block,
            'address': self.exchanges,
            'topics': [Web3.to_hex(ORDER_FILLED_TOPIC)],
        })
        logger.info(f"Found {len(logs)} OrderFilled logs")
        return self.process_logs(logs)

    def fetch_tx_events(self, tx_hash: str) -> List[TradeRecord]:
        """
        Decode the OrderFilled events of a single transaction

        Raises:
            ReceiptNotFoundError: the transaction is unknown to the node
        """
        receipt = self._require_receipt(tx_hash)
        exchanges = {addr.lower() for addr in self.exchanges}

        logs = [
            log for log in receipt.get('logs', [])
            if str(log.get('address', '')).lower() in exchanges and has_topic0(log, ORDER_FILLED_TOPIC)
        ]
        return self.process_logs(logs)

    def fetch_market_info(self, tx_hash: str) -> Optional[MarketInfo]:
        """
        Decode the first ConditionPreparation event of a transaction (scan mode)

        Returns:
            MarketInfo, or None if the transaction prepared no condition

        Raises:
            ReceiptNotFoundError: the transaction is unknown to the node
        """
        receipt = self._require_receipt(tx_hash)
        logs = [log for log in receipt.get('logs', []) if has_topic0(log, CONDITION_PREPARATION_TOPIC)]

        records = decode_condition_logs(logs)
        if not records:
            return None
        return self.market_decoder.decode(records[0])

    def fetch_market_info_by_condition_id(self, condition_id: str, from_block: Optional[int] = None) -> Optional[MarketInfo]:
        """
        Find the ConditionPreparation event of a user-supplied conditionId (manual mode)

        Args:
            condition_id: 32-byte conditionId as hex
            from_block: First block to search (default: genesis)

        Returns:
            MarketInfo, or None if no such condition was prepared
        """
        condition_topic = Web3.to_hex(HexBytes(condition_id))
        start = from_block if from_block is not None else 0

        logger.info(f"Searching ConditionPreparation for {condition_topic} from block {start:,}")
        logs = self.rpc_manager.get_logs({
            'fromBlock': start,
            'toBlock': 'latest',
            'address': self.conditional_tokens,
            'topics': [Web3.to_hex(CONDITION_PREPARATION_TOPIC), condition_topic],
        })

        records = decode_condition_logs(logs)
        if not records:
            return None
        return self.market_decoder.decode(records[0], supplied_condition_id=condition_topic)

    def fetch_market_events(self, from_block: int, to_block: int) -> List[MarketInfo]:
        """Scan a block range for ConditionPreparation events (scan mode)"""
        logger.info(f"Scanning blocks {from_block:,} to {to_block:,} for ConditionPreparation events")
        logs = self.rpc_manager.get_logs({
            'fromBlock': from_block,
            'toBlock': to_block,
            'address': self.conditional_tokens,
            'topics': [Web3.to_hex(CONDITION_PREPARATION_TOPIC)],
        })
        return self.market_decoder.decode_all(decode_condition_logs(logs))
