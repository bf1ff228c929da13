"""
Identifier rules -- pure functions that shape human-readable codes.

Responsibility:
    Derives the 3-letter type code used as the product serial partition,
    the monthly requisition prefix, and the final padded identifiers.
    Serial numbers themselves come from SequenceService; this module only
    formats them.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - type_code() always returns exactly three uppercase ASCII letters.
    - Identifiers are ``partition + zero-padded serial``; the serial width
      is fixed per deployment so identifiers sort lexically within a
      partition.

Failure modes:
    - ValueError if a serial is not positive.
"""

import re
import unicodedata
from datetime import datetime, tzinfo

PRODUCT_SERIAL_WIDTH = 6
REQUISITION_SERIAL_WIDTH = 6
REQUISITION_PREFIX = "REQ"
UNKNOWN_TYPE_CODE = "UNK"
TYPE_CODE_LENGTH = 3

_NON_LETTER = re.compile(r"[^a-zA-Z\s]")
_WHITESPACE = re.compile(r"\s+")


def type_code(type_name: str | None) -> str:
    """
    Build the 3-letter code for a type name, keeping only ASCII letters.

    - 3+ words: first letter of each of the first three words
      ("Smart Phone Case" -> "SPC").
    - 2 words: two letters of the first word and one of the second,
      or one and two when the first word is a single letter.
    - 1 word: its first three letters.
    - nothing usable: "UNK".

    Short results are padded by repeating their last character
    ("PC" -> "PCC", "A" -> "AAA").
    """
    cleaned = unicodedata.normalize("NFKD", str(type_name or ""))
    cleaned = _NON_LETTER.sub(" ", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    words = cleaned.split(" ") if cleaned else []

    if len(words) >= 3:
        code = words[0][0] + words[1][0] + words[2][0]
    elif len(words) == 2:
        first, second = words
        if len(first) >= 2:
            code = first[:2] + second[:1]
        else:
            code = first[:1] + second[:2]
    elif len(words) == 1:
        code = words[0][:3]
    else:
        code = UNKNOWN_TYPE_CODE

    code = code.upper()
    if len(code) < TYPE_CODE_LENGTH:
        pad = code[-1:] or "X"
        code = (code + pad * TYPE_CODE_LENGTH)[:TYPE_CODE_LENGTH]
    return code


def format_serial(serial: int, width: int) -> str:
    """Zero-pad a positive serial to at least ``width`` digits."""
    if serial < 1:
        raise ValueError(f"Serial must be positive, got {serial}")
    return str(serial).zfill(width)


def product_identifier(code: str, serial: int, width: int = PRODUCT_SERIAL_WIDTH) -> str:
    """``SPC`` + 1 -> ``SPC000001``."""
    return f"{code}{format_serial(serial, width)}"


def requisition_prefix(moment: datetime, tz: tzinfo) -> str:
    """
    Monthly requisition partition key, e.g. ``REQ0825`` for August 2025.

    ``moment`` must be timezone-aware; month and year are read in ``tz``.
    """
    if moment.tzinfo is None:
        raise ValueError("requisition_prefix requires a timezone-aware datetime")
    local = moment.astimezone(tz)
    return f"{REQUISITION_PREFIX}{local:%m}{local:%y}"


def requisition_identifier(
    prefix: str, serial: int, width: int = REQUISITION_SERIAL_WIDTH,
) -> str:
    """``REQ0825`` + 1 -> ``REQ0825000001``."""
    return f"{prefix}{format_serial(serial, width)}"
