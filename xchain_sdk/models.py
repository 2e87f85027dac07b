"""
Data models for the xchain adapter SDK.
"""
from enum import Enum
from typing import Dict, Any, Optional, List, Union
from pydantic import BaseModel, Field

# Canonical success marker for a confirmed transaction
SUCCESS_STATUS = "0x1"


class EventKind(str, Enum):
    """Recognized cross-chain event kinds"""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    WITHDRAW_FEE = "withdrawFee"
    DEBT = "debt"


class ValueKind(str, Enum):
    """How a deposit value was represented on-chain"""
    QUANTITY = "quantity"  # "5.0000 EOS", symbol-suffixed decimal string
    AMOUNT = "amount"      # raw integer amount with a separate symbol field


class ChainInfo(BaseModel):
    """Chain head summary returned by a node"""
    chain_id: str = Field(..., alias="chainId")
    head_height: int = Field(..., alias="headHeight")
    irreversible_height: int = Field(..., alias="irreversibleHeight")
    raw: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True
        frozen = True


class Block(BaseModel):
    """A block with its timestamp normalized to unix seconds"""
    number: int
    timestamp: float
    block_id: Optional[str] = Field(None, alias="blockId")
    raw: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True
        frozen = True


class DepositArgs(BaseModel):
    """Arguments of a decoded inlock deposit"""
    user: str
    to_htlc_addr: str = Field(..., alias="toHtlcAddr")
    storeman: str
    x_hash: str = Field(..., alias="xHash")
    wan_addr: str = Field(..., alias="wanAddr")
    value: str
    value_kind: ValueKind = Field(..., alias="valueKind")
    token_orig_account: str = Field(..., alias="tokenOrigAccount")

    class Config:
        populate_by_name = True
        frozen = True


class CanonicalEvent(BaseModel):
    """Chain-agnostic cross-chain event exchanged with the relayer"""
    address: str
    block_number: int = Field(..., alias="blockNumber")
    transaction_hash: str = Field(..., alias="transactionHash")
    timestamp: float
    event_kind: str = Field(..., alias="eventKind")
    action: str
    authorization: Optional[List[Dict[str, Any]]] = None
    args: Union[DepositArgs, Dict[str, Any]]

    class Config:
        populate_by_name = True
        frozen = True


class PendingReceipt(BaseModel):
    """Result of a submission before (or at) finality"""
    tx_id: str = Field(..., alias="txId")
    block_number: Optional[int] = Field(None, alias="blockNumber")
    status: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True
        frozen = True

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS_STATUS
