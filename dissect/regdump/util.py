from __future__ import annotations

from datetime import timedelta, timezone

from dissect.util.ts import wintimestamp

from dissect.regdump.c_regdump import c_regdump

PRINTABLE_MIN = 0x20
PRINTABLE_MAX = 0x7E

TICKS_PER_SECOND = 10_000_000


def is_printable(char: int) -> bool:
    return PRINTABLE_MIN <= char <= PRINTABLE_MAX


def escape_byte(char: int) -> str:
    if is_printable(char):
        return chr(char)
    return f"<{char:02X}>"


def escape_unit(unit: int) -> str:
    """Escape a single UTF-16 code unit.

    Printable ASCII is returned as is, anything else is written as its
    hexadecimal code, using two digits below 0x100 and four digits otherwise.
    """
    if is_printable(unit):
        return chr(unit)
    if unit < 0x100:
        return f"<{unit:02X}>"
    return f"<{unit:04X}>"


def decode_name(blob: bytes, is_comp_name: bool) -> str:
    """Decode a raw key or value name into a printable ASCII string.

    Compressed names use a single byte per character, others are UTF-16-LE.
    """
    if is_comp_name:
        return "".join(escape_byte(char) for char in blob)

    num_units = len(blob) // 2
    if not num_units:
        return ""

    return "".join(escape_unit(unit) for unit in c_regdump.uint16[num_units](blob))


def format_timestamp(ticks: int, full: bool = False, brackets: bool = False) -> str:
    """Format a FILETIME as local ``YYYY-MM-DD HH:MM:SS``.

    Args:
        ticks: The number of 100 nanosecond intervals since 1601-01-01 UTC.
        full: Append the sub-second remainder as seven digits.
        brackets: Wrap the result as ``[...] `` for use as a line prefix.
    """
    seconds, remainder = divmod(ticks, TICKS_PER_SECOND)

    try:
        ts = wintimestamp(seconds * TICKS_PER_SECOND).replace(tzinfo=timezone.utc)
        # The conversion goes through a float, snap back to the whole second we asked for
        ts = (ts + timedelta(microseconds=500_000)).replace(microsecond=0).astimezone()
        text = f"{ts.year}-{ts:%m-%d %H:%M:%S}"
        if full:
            text += f".{remainder:07d}"
    except (OverflowError, ValueError, OSError):
        # Not representable as a calendar date, the raw value already has full resolution
        text = f"{ticks:#x}"

    if brackets:
        text = f"[{text}] "

    return text
