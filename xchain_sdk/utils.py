"""
Value and hex helpers shared by the chain adapters.
"""
import hashlib
import re
from datetime import datetime, timezone
from decimal import Decimal, ROUND_DOWN
from typing import Union

Number = Union[int, str, Decimal]

_NON_NUMERIC = re.compile(r"[^\d.\-]")


def hex_add_0x(value: str) -> str:
    """Prefix a hex string with 0x unless it already is"""
    if value.startswith("0x"):
        return value
    return "0x" + value


def hex_strip_0x(value: str) -> str:
    """Remove a leading 0x from a hex string if present"""
    if value.startswith("0x"):
        return value[2:]
    return value


def to_decimal(value: Number) -> Decimal:
    """
    Convert an int, decimal string or 0x-prefixed hex string to Decimal.

    Args:
        value: Value to convert; None and empty strings count as zero

    Returns:
        Decimal representation
    """
    if value is None or value == "":
        return Decimal(0)
    if isinstance(value, str) and (value.startswith("0x") or value.startswith("-0x")):
        negative = value.startswith("-")
        parsed = Decimal(int(value.replace("0x", "").lstrip("-"), 16))
        return -parsed if negative else parsed
    return Decimal(str(value))


def eos_to_decimal(quantity: str) -> Decimal:
    """Parse an EOS asset string such as "5.0000 EOS" into its numeric part"""
    return Decimal(_NON_NUMERIC.sub("", quantity))


def decimal_to_eos(amount: Number, symbol: str, decimals: int = 4) -> str:
    """Format an amount as an EOS asset string with a fixed precision"""
    exponent = Decimal(1).scaleb(-int(decimals))
    quantized = to_decimal(amount).quantize(exponent, rounding=ROUND_DOWN)
    return f"{quantized:f} {symbol}"


def token_to_wei(token: Number, decimals: int = 18) -> str:
    """Scale a token amount to its smallest unit, truncating the remainder"""
    wei = (to_decimal(token) * Decimal(10) ** decimals).to_integral_value(rounding=ROUND_DOWN)
    return str(int(wei))


def token_to_wei_hex(token: Number, decimals: int = 18) -> str:
    return hex(int(token_to_wei(token, decimals)))


def wei_to_token(token_wei: Number, decimals: int = 18) -> str:
    """Scale a smallest-unit amount back to a token amount"""
    value = to_decimal(token_wei) / (Decimal(10) ** decimals)
    return format(value.normalize(), "f")


def sha256_hex(data: str) -> str:
    """
    Hash a 0x-prefixed hex payload with SHA-256.

    Args:
        data: Hex string (with 0x prefix) of the bytes to hash

    Returns:
        0x-prefixed hex digest
    """
    raw = bytes.fromhex(hex_strip_0x(data))
    return "0x" + hashlib.sha256(raw).hexdigest()


def parse_block_time(block_time: Union[str, int, float]) -> float:
    """
    Convert a node-reported block time into unix seconds.

    String times carry no zone designator and are interpreted as UTC;
    numeric times are already unix seconds.
    """
    if isinstance(block_time, (int, float)):
        return float(block_time)
    text = block_time[:-1] if block_time.endswith("Z") else block_time
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()
