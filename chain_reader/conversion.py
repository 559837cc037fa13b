"""
Hex quantity and token amount conversion.

All arithmetic stays on Python integers so balances wider than 64 bits are
converted without loss; ``Decimal`` is only built from the final string.
"""
import string
from decimal import Decimal

from core.exceptions import FormatError

BALANCE_OF_SELECTOR = "0x70a08231"
EMPTY_CODE = "0x"

_HEX_DIGITS = frozenset(string.hexdigits)


def hex_to_int(value: str | None) -> int:
    """
    Decode a ``0x``-prefixed hex quantity.

    Parameters
    ----------
    value : str | None
        Hex string; ``""``, ``"0x"`` and None decode to 0

    Returns
    -------
    int
        Unsigned integer value

    Raises
    ------
    FormatError
        If the string contains non-hex characters
    """
    if value is None:
        return 0
    if not isinstance(value, str):
        raise FormatError(f"Hex quantity must be a string, got {type(value).__name__}")
    digits = value[2:] if value[:2] in ("0x", "0X") else value
    if not digits:
        return 0
    if not _HEX_DIGITS.issuperset(digits):
        raise FormatError(f"Invalid hex quantity: {value!r}")
    return int(digits, 16)


def int_to_hex(value: int) -> str:
    """Encode an unsigned integer as a hex quantity (``0x0`` for zero)."""
    if value < 0:
        raise FormatError(f"Hex quantity must be unsigned, got {value}")
    return hex(value)


def scale_to_decimal(raw: int, decimals: int) -> str:
    """
    Render ``raw / 10**decimals`` exactly.

    Parameters
    ----------
    raw : int
        Amount in the smallest unit
    decimals : int
        Number of decimal places of the unit

    Returns
    -------
    str
        Decimal string with trailing fractional zeros trimmed, always
        keeping at least ``.0`` unless ``decimals`` is 0

    Raises
    ------
    FormatError
        If ``raw`` or ``decimals`` is negative
    """
    if raw < 0 or decimals < 0:
        raise FormatError(f"Cannot scale raw={raw} with decimals={decimals}")

    if decimals == 0:
        return str(raw)

    integer_part, fractional_part = divmod(raw, 10 ** decimals)
    fraction = str(fractional_part).rjust(decimals, "0").rstrip("0")
    return f"{integer_part}.{fraction or '0'}"


def to_decimal(raw: int, decimals: int) -> Decimal:
    """Exact ``Decimal`` of ``raw / 10**decimals``."""
    return Decimal(scale_to_decimal(raw, decimals))


def normalize_address(address: str) -> str:
    """Lower-case form used for every address comparison."""
    return address.lower()


def pad_address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte log topic."""
    return "0x" + normalize_address(address)[2:].rjust(64, "0")


def address_from_topic(topic: str) -> str:
    """
    Extract the address stored in an indexed 32-byte topic.

    Raises
    ------
    FormatError
        If the topic is shorter than an address
    """
    digits = topic[2:] if topic[:2] in ("0x", "0X") else topic
    if len(digits) < 40:
        raise FormatError(f"Topic too short for an address: {topic!r}")
    return "0x" + digits[-40:].lower()


def encode_balance_of(address: str) -> str:
    """Call data for ``balanceOf(address)``."""
    return BALANCE_OF_SELECTOR + normalize_address(address)[2:].rjust(64, "0")


def is_empty_code(code: str | None) -> bool:
    """True when ``eth_getCode`` reports no contract."""
    return not code or code == EMPTY_CODE
