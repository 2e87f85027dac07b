"""
Pytest fixtures for the xchain adapter SDK tests.
"""
import os
from typing import Dict, List, Optional, Tuple

import pytest

from xchain_sdk.config import ChainConfig, ChainSettings
from xchain_sdk.models import PendingReceipt
from xchain_sdk._rate_limited_log import reset_rate_limits

# Constants for testing
TEST_EOS_URL = "https://eos.example.com"
TEST_EOS_BP_URL = "https://bp.eos.example.com"
TEST_EVM_URL = "https://rpc.example.com"
TEST_HTLC = "0x1234567890123456789012345678901234567890"
TEST_ADDRESS = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"

# Memo of a well-formed inlock transfer
TEST_MEMO = "inlock:aa11:0xdead:smg1:reserved"


@pytest.fixture(autouse=True)
def _clean_state(monkeypatch):
    """Drop XCHAIN_* env vars, the chain table cache and rate-limit memory"""
    for name in list(os.environ):
        if name.startswith("XCHAIN_"):
            monkeypatch.delenv(name, raising=False)
    reset_rate_limits()
    ChainConfig._chains_cache = None
    yield
    ChainConfig._chains_cache = None
    reset_rate_limits()


@pytest.fixture
def eos_settings():
    """EOS settings with a fast poll interval and short deadline"""
    return ChainSettings(
        chain_type="EOS",
        family="eos",
        node_url=TEST_EOS_URL,
        bp_node_url=TEST_EOS_BP_URL,
        htlc_addr="htlceos",
        deposit_action=["transfer"],
        withdraw_action=["inredeem", "inrevoke", "outlock", "outredeem", "outrevoke"],
        debt_action=["lockdebt", "redeemdebt", "revokedebt"],
        withdraw_fee_action="withdraw",
        scan_retry_times=2,
        promise_timeout_ms=2000,
        poll_interval_s=0,
        history_page_size=100,
    )


@pytest.fixture
def evm_settings():
    """ETH settings with the three HTLC logger events"""
    return ChainConfig.get_chain(
        "ETH",
        overrides={
            "node_url": TEST_EVM_URL,
            "htlc_addr": TEST_HTLC,
            "promise_timeout_ms": 2000,
            "poll_interval_s": 0,
            "scan_retry_times": 1,
        },
    )


def make_record(
    name: str,
    data: Optional[Dict] = None,
    block_num: int = 100,
    trx_id: str = "aa" * 32,
    account: str = "eosio.token",
    block_time: str = "2019-05-01T12:00:00.000",
    nested: bool = False
) -> Dict:
    """Build a history-API action record in either supported shape"""
    act = {
        "account": account,
        "name": name,
        "authorization": [{"actor": "alice", "permission": "active"}],
        "data": data,
    }
    if nested:
        return {
            "block_num": block_num,
            "block_time": block_time,
            "action_trace": {"act": act, "trx_id": trx_id},
        }
    return {"block_num": block_num, "block_time": block_time, "act": act, "trx_id": trx_id}


def make_transfer(memo: str = TEST_MEMO, **kwargs) -> Dict:
    """Token transfer record into the HTLC account"""
    data = {
        "from": "alice",
        "to": "htlceos",
        "quantity": "5.0000 EOS",
        "memo": memo,
    }
    return make_record("transfer", data, **kwargs)


class FakeFinalitySource:
    """
    Scripted chain for FinalityTracker tests.

    Each poll pops the next (receipt, head, irreversible) triple; the last
    one repeats once the script runs out.
    """

    def __init__(
        self,
        script: List[Tuple[Optional[PendingReceipt], int, int]],
        chain_type: str = "EOS",
        native_success_status: Optional[str] = "executed"
    ):
        self.script = list(script)
        self.chain_type = chain_type
        self.native_success_status = native_success_status
        self.receipt_calls = 0
        self.height_calls = 0
        self._current = self.script[0]

    def _advance(self):
        if self.script:
            self._current = self.script.pop(0)
        return self._current

    async def fetch_receipt(self, tx_id, block_hint=None):
        self.receipt_calls += 1
        return self._advance()[0]

    async def fetch_heights(self):
        self.height_calls += 1
        _, head, irreversible = self._current
        return head, irreversible


class FakeNonceSource:
    """NonceSource double returning a fixed pending nonce"""

    def __init__(self, nonce: int = 7, chain_key: str = "ETH"):
        self.nonce = nonce
        self._chain_key = chain_key
        self.calls = 0

    @property
    def chain_key(self) -> str:
        return self._chain_key

    async def get_pending_nonce(self, address: str) -> int:
        self.calls += 1
        return self.nonce


def receipt(block_number: Optional[int], status: Optional[str] = "executed", tx_id: str = "tx1") -> PendingReceipt:
    return PendingReceipt(tx_id=tx_id, block_number=block_number, status=status)
