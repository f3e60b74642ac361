from __future__ import annotations

from typing import NamedTuple

from dissect.regdump.c_regdump import (
    DEVPROP_TYPE_BOOLEAN,
    DEVPROP_TYPE_FILETIME,
    DEVPROP_TYPE_INT16,
    DEVPROP_TYPE_INT32,
    DEVPROP_TYPE_INT64,
    DEVPROP_TYPE_STRING,
    DEVPROP_TYPE_STRING_INDIRECT,
    DEVPROP_TYPE_STRING_LIST,
    DEVPROP_TYPE_UINT16,
    DEVPROP_TYPE_UINT32,
    DEVPROP_TYPE_UINT64,
    DEVPROP_TYPEMOD,
    REG_BINARY,
    REG_DWORD,
    REG_EXPAND_SZ,
    REG_LINK,
    REG_MULTI_SZ,
    REG_NONE,
    REG_QWORD,
    REG_SZ,
    c_regdump,
)
from dissect.regdump.util import escape_byte, escape_unit, format_timestamp, is_printable

TEXT_NONE = 0
TEXT_NARROW = 8
TEXT_WIDE = 16

# 8 byte values in [2001-01-01, 2101-01-01) are considered to be a FILETIME
FILETIME_MIN = 126227808000000000
FILETIME_MAX = 157784544000000000

STRING_TYPES = (REG_SZ, REG_MULTI_SZ, REG_EXPAND_SZ, REG_LINK)

DEVPROP_TYPE_MAP = {
    DEVPROP_TYPE_INT32: REG_DWORD,
    DEVPROP_TYPE_UINT32: REG_DWORD,
    DEVPROP_TYPE_INT64: REG_QWORD,
    DEVPROP_TYPE_UINT64: REG_QWORD,
    DEVPROP_TYPE_FILETIME: REG_QWORD,
    DEVPROP_TYPE_STRING: REG_SZ,
    DEVPROP_TYPE_STRING_INDIRECT: REG_SZ,
    DEVPROP_TYPE_STRING_LIST: REG_MULTI_SZ,
}


class TraversalContext(NamedTuple):
    """Which of the special keys that change value type interpretation we are below."""

    properties: bool = False
    driver_packages: bool = False


def resolve_type(value_type: int, context: TraversalContext) -> int:
    """Return the standard registry type a value should be displayed as.

    Values below a ``Properties`` key with the high word set are device
    properties, values below a ``DriverPackages`` key carry flags in the high
    word.
    """
    if context.properties and (value_type & DEVPROP_TYPEMOD) == DEVPROP_TYPEMOD:
        return DEVPROP_TYPE_MAP.get(value_type & 0xFFFF, value_type)

    if context.driver_packages:
        return value_type & 0xFFFF

    return value_type


def classify_text(value_type: int, data: bytes) -> int:
    """See if binary data is predominantly text.

    Wide text needs 3 out of 4 printable units, narrow text 7 out of 8 printable
    bytes. In both cases the first two characters must be printable.
    """
    size = len(data)
    if value_type not in (REG_BINARY, REG_NONE) or size < 8:
        return TEXT_NONE

    if data[1] == 0 and data[3] == 0:
        units = c_regdump.uint16[size // 2](data)
        if not (is_printable(units[0]) and is_printable(units[1])):
            return TEXT_NONE

        printable = sum(1 for unit in units if is_printable(unit))
        return TEXT_WIDE if printable * 2 * 8 >= size * 6 else TEXT_NONE

    if not (is_printable(data[0]) and is_printable(data[1])):
        return TEXT_NONE

    printable = sum(1 for char in data if is_printable(char))
    return TEXT_NARROW if printable * 8 >= size * 7 else TEXT_NONE


def render_value(
    value_type: int,
    data: bytes,
    context: TraversalContext | None = None,
    all_string: bool = False,
) -> str:
    """Render the data of a value as a single line of printable ASCII.

    Args:
        value_type: The type as stored in the value record.
        data: The (reassembled) data of the value.
        context: The special keys the value is located below.
        all_string: Don't stop strings at the first null.
    """
    context = context or TraversalContext()
    value_type = resolve_type(value_type, context)
    size = len(data)
    text = classify_text(value_type, data)

    if value_type == REG_DWORD and size == 4:
        return f"0x{c_regdump.uint32(data):X} ({c_regdump.int32(data)})"

    if context.properties and size == 1 and value_type == DEVPROP_TYPEMOD | DEVPROP_TYPE_BOOLEAN:
        if data[0] == 0xFF:
            return "true"
        if data[0] == 0x00:
            return "false"
        return f"{data[0]:02X}"

    if context.properties and size == 2:
        if value_type == DEVPROP_TYPEMOD | DEVPROP_TYPE_UINT16:
            return f"0x{c_regdump.uint16(data):X} ({c_regdump.uint16(data)})"
        if value_type == DEVPROP_TYPEMOD | DEVPROP_TYPE_INT16:
            return f"0x{c_regdump.uint16(data):X} ({c_regdump.int16(data)})"

    if size == 8 and value_type in (REG_QWORD, REG_BINARY, REG_NONE):
        if FILETIME_MIN <= (filetime := c_regdump.int64(data)) < FILETIME_MAX:
            if value_type == REG_QWORD:
                return f"{format_timestamp(filetime)} (0x{filetime:X}; {filetime})"
            return f"{format_timestamp(filetime)} ({hexdump(data)})"

    if value_type == REG_QWORD and size == 8:
        return f"0x{c_regdump.uint64(data):X} ({c_regdump.int64(data)})"

    if value_type in STRING_TYPES or text == TEXT_WIDE:
        return render_wide(
            data,
            multi=value_type == REG_MULTI_SZ,
            trim=text != TEXT_WIDE,
            truncate=not all_string and text != TEXT_WIDE,
        )

    if text == TEXT_NARROW:
        return "".join(escape_byte(char) for char in data)

    return hexdump(data)


def render_wide(data: bytes, multi: bool = False, trim: bool = True, truncate: bool = True) -> str:
    """Render UTF-16-LE data.

    Args:
        data: The string data.
        multi: Separate the strings of a multi-string with ``<>``.
        trim: Remove trailing null characters.
        truncate: Stop at the first null that is not a multi-string separator, marking it with `` <...>``.
    """
    units = list(c_regdump.uint16[len(data) // 2](data)) if len(data) >= 2 else []

    if trim:
        while units and units[-1] == 0:
            units.pop()

    result = []
    for idx, unit in enumerate(units):
        if is_printable(unit):
            result.append(chr(unit))
        elif unit == 0 and multi and idx + 1 < len(units) and units[idx + 1] != 0:
            result.append("<>")
        elif unit == 0 and truncate:
            result.append(" <...>")
            break
        else:
            result.append(escape_unit(unit))

    return "".join(result)


def hexdump(data: bytes) -> str:
    return ",".join(f"{char:02X}" for char in data)
