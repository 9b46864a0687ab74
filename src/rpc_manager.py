"""
RPC Manager for Polygon JSON-RPC endpoints
Connect-time failover across endpoints; individual calls are never retried
"""
import logging
import os
from typing import Any, Callable, Dict, List, Optional

from hexbytes import HexBytes
from requests.exceptions import RequestException
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from errors import TransportError

logger = logging.getLogger(__name__)


class RPCManager:
    """Single point of contact with the chain for the scanning pipeline"""

    def __init__(self, rpc_endpoints: List[str], timeout: int = 30):
        """
        Initialize RPC Manager

        Args:
            rpc_endpoints: List of RPC endpoint URLs (can include "infura")
            timeout: HTTP request timeout in seconds
        """
        self.rpc_endpoints = self._process_endpoints(rpc_endpoints)
        self.timeout = timeout
        self.current_index = 0
        self.w3: Optional[Web3] = None

        self._connect()

    def _process_endpoints(self, endpoints: List[str]) -> List[str]:
        """
        Process endpoint list, replace "infura" with actual URL from env

        Args:
            endpoints: List of endpoint URLs or "infura" placeholder

        Returns:
            List of processed endpoint URLs
        """
        processed = []
        for endpoint in endpoints:
            if endpoint.lower() == "infura":
                api_key = os.getenv('INFURA_API_KEY')
                if not api_key:
                    logger.warning("INFURA_API_KEY not found in environment, skipping Infura")
                    continue
                processed.append(f"https://polygon-mainnet.infura.io/v3/{api_key}")
                logger.info("Using Infura RPC (from INFURA_API_KEY)")
            else:
                processed.append(endpoint)

        if not processed:
            raise ValueError("No valid RPC endpoints available")

        return processed

    def _connect(self) -> bool:
        """
        Connect to the first reachable RPC endpoint

        Returns:
            bool: True if connection successful
        """
        for _ in range(len(self.rpc_endpoints)):
            endpoint = self.rpc_endpoints[self.current_index]
            display_endpoint = self._mask_api_key(endpoint)
            try:
                logger.info(f"Attempting to connect to RPC: {display_endpoint}")

                self.w3 = Web3(Web3.HTTPProvider(endpoint, request_kwargs={'timeout': self.timeout}))

                # Polygon blocks carry POA extraData
                self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

                if self.w3.is_connected():
                    logger.info(f"✓ Connected to RPC: {display_endpoint} (Chain ID: {self.w3.eth.chain_id})")
                    return True
                logger.warning(f"✗ Failed to connect to RPC: {display_endpoint}")
            except (RequestException, Web3Exception, OSError) as e:
                logger.warning(f"✗ Error connecting to RPC {display_endpoint}: {str(e)}")

            self._rotate_endpoint()

        logger.error("Failed to connect to any RPC endpoint")
        return False

    def _mask_api_key(self, url: str) -> str:
        """Mask API key in URL for logging"""
        if 'infura.io/v3/' in url:
            parts = url.split('/v3/')
            if len(parts) == 2:
                return f"{parts[0]}/v3/***{parts[1][-4:]}"
        return url

    def _rotate_endpoint(self):
        """Rotate to the next RPC endpoint"""
        self.current_index = (self.current_index + 1) % len(self.rpc_endpoints)
        logger.info(f"Rotating to RPC endpoint {self.current_index + 1}/{len(self.rpc_endpoints)}")

    def _execute(self, method: str, func: Callable[[], Any]) -> Any:
        """
        Run a single RPC call, translating transport failures into TransportError

        Reverts (ContractLogicError) and TransactionNotFound are passed through
        unchanged so callers can tell them apart from transport failures.
        """
        if not self.w3:
            self._connect()
        try:
            return func()
        except (ContractLogicError, TransactionNotFound):
            raise
        except (RequestException, Web3Exception, OSError) as e:
            logger.error(f"RPC {method} failed on {self._mask_api_key(self.rpc_endpoints[self.current_index])}: {str(e)[:200]}")
            raise TransportError(method, e) from e

    def get_logs(self, filter_params: Dict[str, Any]) -> List:
        """
        Get logs using eth_getLogs

        Args:
            filter_params: Filter parameters for eth_getLogs

        Returns:
            List of log entries
        """
        return self._execute('eth_getLogs', lambda: self.w3.eth.get_logs(filter_params))

    def get_transaction_receipt(self, tx_hash):
        """
        Get transaction receipt

        Args:
            tx_hash: Transaction hash

        Returns:
            Transaction receipt, or None if the node does not know the transaction
        """
        try:
            return self._execute(
                'eth_getTransactionReceipt',
                lambda: self.w3.eth.get_transaction_receipt(tx_hash)
            )
        except TransactionNotFound:
            return None

    def call(self, to: str, data: str) -> bytes:
        """
        Static call (eth_call) against the latest block

        Args:
            to: Contract address
            data: ABI-encoded calldata

        Returns:
            bytes: Raw return data
        """
        tx = {'to': Web3.to_checksum_address(to), 'data': data}
        return bytes(HexBytes(self._execute('eth_call', lambda: self.w3.eth.call(tx))))
