"""
Normalization of raw chain actions into canonical cross-chain events.

The decoder is a pure function of its input records, the static chain
settings and the leader flag. It never touches the network or the clock;
timestamps come from each record's own block time.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import ChainSettings
from .exceptions import DecodeSkipped
from .models import CanonicalEvent, DepositArgs, EventKind, ValueKind
from .utils import hex_add_0x, parse_block_time
from ._rate_limited_log import rate_limited_log

logger = logging.getLogger(__name__)

INLOCK_TAG = "inlock"
INLOCK_PARTS = 5


def encode_token(account: str, quantity: str) -> str:
    """Token identity from a contract account and an asset string ("5.0000 EOS")"""
    return encode_token_with_symbol(account, quantity.split(" ")[1])


def encode_token_with_symbol(account: str, symbol: str) -> str:
    """Token identity from a contract account and a bare symbol"""
    return f"{account}:{symbol}"


def unwrap_action(record: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Extract the action body and transaction id from a raw record.

    History nodes return either a flat ``{"act": ..., "trx_id": ...}`` shape
    or nest both inside an ``action_trace`` wrapper.
    """
    if "action_trace" in record:
        trace = record["action_trace"]
        return trace["act"], trace.get("trx_id")
    return record["act"], record.get("trx_id")


def _event_kind(name: str, settings: ChainSettings) -> str:
    if name in settings.deposit_action:
        return EventKind.DEPOSIT.value
    if name in settings.withdraw_action:
        return EventKind.WITHDRAW.value
    if name in settings.debt_action:
        return EventKind.DEBT.value
    return name


def _deposit_args(account: str, data: Dict[str, Any], parts: List[str]) -> DepositArgs:
    quantity = data.get("quantity")
    amount = data.get("amount")
    if quantity:
        value, value_kind = quantity, ValueKind.QUANTITY
        token = encode_token(account, quantity)
    elif amount is not None:
        value, value_kind = str(amount), ValueKind.AMOUNT
        token = encode_token_with_symbol(account, data["symbol"])
    else:
        raise DecodeSkipped("inlock deposit carries neither quantity nor amount")

    return DepositArgs(
        user=data["from"],
        to_htlc_addr=data["to"],
        storeman=hex_add_0x(parts[3]),
        x_hash=hex_add_0x(parts[1]),
        wan_addr=hex_add_0x(parts[2]),
        value=value,
        value_kind=value_kind,
        token_orig_account=token,
    )


def _pass_through_args(data: Dict[str, Any]) -> Dict[str, Any]:
    args = dict(data)
    for field in ("xHash", "x"):
        if args.get(field):
            args[field] = hex_add_0x(args[field])
    if args.get("quantity") is not None:
        args["value"] = args["quantity"]
    if args.get("amount") is not None:
        args["value"] = args["amount"]
    return args


def decode_action(
    record: Dict[str, Any],
    settings: ChainSettings,
    is_leader: bool = False
) -> Optional[CanonicalEvent]:
    """
    Decode one raw record.

    Args:
        record: Raw action/log record as returned by the node
        settings: Chain settings holding the action-name table
        is_leader: Whether this process may emit fee-withdrawal events

    Returns:
        CanonicalEvent, or None when the record is not cross-chain relevant

    Raises:
        Exception: Any error from a malformed record; ``decode_actions``
            catches these per record
    """
    act, trx_id = unwrap_action(record)
    account = act["account"]
    name = act["name"]
    data = act.get("data")

    base = {
        "address": account,
        "block_number": record["block_num"],
        "transaction_hash": trx_id,
        "timestamp": parse_block_time(record["block_time"]),
        "action": name,
        "authorization": act.get("authorization"),
    }

    if name in settings.deposit_action:
        parts = data["memo"].split(":")
        if len(parts) == INLOCK_PARTS and parts[0] == INLOCK_TAG:
            return CanonicalEvent(
                event_kind=EventKind.DEPOSIT.value,
                args=_deposit_args(account, data, parts),
                **base
            )
        if (is_leader and len(parts) == 1
                and settings.withdraw_fee_action
                and parts[0] == settings.withdraw_fee_action):
            return CanonicalEvent(
                event_kind=EventKind.WITHDRAW_FEE.value,
                args=dict(data),
                **base
            )
        return None

    if not data:
        return None
    return CanonicalEvent(
        event_kind=_event_kind(name, settings),
        args=_pass_through_args(data),
        **base
    )


def decode_actions(
    records: Iterable[Dict[str, Any]],
    settings: ChainSettings,
    is_leader: bool = False,
    logger_instance: Optional[logging.Logger] = None
) -> List[CanonicalEvent]:
    """
    Decode a batch of raw records, preserving their order.

    A record that fails to decode is logged and skipped; it never fails the
    batch.

    Args:
        records: Raw action/log records
        settings: Chain settings holding the action-name table
        is_leader: Whether this process may emit fee-withdrawal events
        logger_instance: Logger for skipped records

    Returns:
        Canonical events, possibly fewer than the input records
    """
    log = logger_instance or logger
    events: List[CanonicalEvent] = []
    for record in records:
        try:
            event = decode_action(record, settings, is_leader)
        except Exception as e:
            rate_limited_log(
                "ChainType: %s skipped undecodable record %s: %r",
                settings.chain_type, record, e,
                level="error",
                key=f"decode:{settings.chain_type}:{record!r}:{e!r}",
                logger_instance=log,
            )
            continue
        if event is not None:
            events.append(event)
    return events
