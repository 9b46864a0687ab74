"""In-memory chain used by the tests: log builders and a fake RPC client"""
from typing import Dict, List, Optional

from hexbytes import HexBytes
from web3.exceptions import ContractLogicError

from errors import TransportError
from event_decoder import CONDITION_PREPARATION_TOPIC, ERC20_TRANSFER_TOPIC, ORDER_FILLED_TOPIC

CTF_EXCHANGE = "0x4bfb41d5b3570defd03c39a9a4d8de6bd8b8982e"
CONDITIONAL_TOKENS = "0x4d97dcd97ec945f40cf65f87097ace5ea0476045"
USDC_E = "0x2791bca1f2de4661ed88a30c99a7a9449aa84174"

MAKER = "0x1111111111111111111111111111111111111111"
TAKER = "0x2222222222222222222222222222222222222222"
ORACLE = "0x157ce2d672854c848c9b79c49a8cc6cc89176a49"

# Opaque ERC-1155 position ID; its low 160 bits are not a contract
POSITION_ID = int("0x" + "ab" * 32, 16)
POSITION_CANDIDATE = "0x" + "ab" * 20


def tx(n: int) -> str:
    return "0x" + f"{n:064x}"


def word(value: int) -> bytes:
    return value.to_bytes(32, 'big')


def address_topic(address: str) -> bytes:
    return b'\x00' * 12 + bytes.fromhex(address[2:])


def order_filled_log(tx_hash: str, log_index: int, maker_asset_id: int, taker_asset_id: int,
                     maker_amount: int, taker_amount: int, fee: Optional[int] = 0,
                     exchange: str = CTF_EXCHANGE) -> Dict:
    data = word(maker_asset_id) + word(taker_asset_id) + word(maker_amount) + word(taker_amount)
    if fee is not None:
        data += word(fee)
    return {
        'address': exchange,
        'topics': [ORDER_FILLED_TOPIC, HexBytes(b'\x42' * 32), address_topic(MAKER), address_topic(TAKER)],
        'data': HexBytes(data),
        'transactionHash': HexBytes(tx_hash),
        'logIndex': log_index,
        'blockNumber': 66000001,
    }


def transfer_log(token: str, value: int) -> Dict:
    return {
        'address': token,
        'topics': [ERC20_TRANSFER_TOPIC, address_topic(MAKER), address_topic(TAKER)],
        'data': HexBytes(word(value)),
    }


def condition_log(condition_id: bytes, oracle: str, question_id: bytes, outcome_slot_count: int = 2,
                  tx_hash: str = None) -> Dict:
    return {
        'address': CONDITIONAL_TOKENS,
        'topics': [CONDITION_PREPARATION_TOPIC, HexBytes(condition_id), address_topic(oracle), HexBytes(question_id)],
        'data': HexBytes(word(outcome_slot_count)),
        'transactionHash': HexBytes(tx_hash or tx(999)),
        'logIndex': 0,
        'blockNumber': 66000002,
    }


class FakeRPC:
    """Records every request; answers from in-memory tables"""

    def __init__(self):
        self.decimals: Dict[str, int] = {}
        self.receipts: Dict[str, Dict] = {}
        self.logs: List[Dict] = []
        self.failing_calls: set = set()
        self.failing_reverts: set = set()
        self.failing_receipts: set = set()
        self.fail_get_logs = False

        self.calls: List[str] = []
        self.receipt_requests: List[str] = []
        self.log_filters: List[Dict] = []

    def call(self, to: str, data: str) -> bytes:
        to = to.lower()
        self.calls.append(to)
        if to in self.failing_calls:
            raise TransportError('eth_call', ConnectionError('connection reset'))
        if to in self.failing_reverts:
            raise ContractLogicError("execution reverted")
        if to in self.decimals:
            return word(self.decimals[to])
        return b''

    def get_transaction_receipt(self, tx_hash: str):
        self.receipt_requests.append(tx_hash)
        if tx_hash in self.failing_receipts:
            raise TransportError('eth_getTransactionReceipt', ConnectionError('connection reset'))
        return self.receipts.get(tx_hash)

    def get_logs(self, filter_params: Dict) -> List[Dict]:
        self.log_filters.append(filter_params)
        if self.fail_get_logs:
            raise TransportError('eth_getLogs', ConnectionError('connection reset'))
        return list(self.logs)
