from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, BinaryIO, NamedTuple, TextIO

from dissect.regdump.regf import RegistryHive
from dissect.regdump.render import TraversalContext, render_value
from dissect.regdump.util import format_timestamp

if TYPE_CHECKING:
    from collections.abc import Iterator

    from dissect.regdump.regf import KeyNode, KeyValue

log = logging.getLogger(__name__)
log.setLevel(os.getenv("DISSECT_LOG_REGDUMP", "CRITICAL"))

PROPERTIES = b"Properties"
DRIVER_PACKAGES = b"DriverPackages"

# Width of the "[TTTTTTTT:SSSSSSSS] " column in hexadecimal mode
HEX_TYPE_WIDTH = 20


class DumpOptions(NamedTuple):
    hex_type: bool = False
    all_string: bool = False
    only_values: bool = False
    only_keys: bool = False
    time_sec: bool = False
    time_full: bool = False

    @property
    def show_time(self) -> bool:
        return self.time_sec or self.time_full


class RegistryDumper:
    """Dump a registry hive as text, one line per value.

    Values and empty keys are written by default. In keys only mode every key is
    written along with its last write time, in values only mode empty keys are
    left out.
    """

    def __init__(self, hive: RegistryHive, options: DumpOptions | None = None):
        self.hive = hive
        self.options = options or DumpOptions()

    def lines(self) -> Iterator[str]:
        yield from self._walk("", self.hive.root(), TraversalContext())

    def dump(self, fh: TextIO) -> None:
        for line in self.lines():
            fh.write(line + "\n")

    def _walk(self, parent: str, key: KeyNode, context: TraversalContext) -> Iterator[str]:
        options = self.options
        path = f"{parent}/{key.name}"

        if options.only_keys:
            yield f"{format_timestamp(key.last_write_time, options.time_full, True)}{path}"
            empty = False
        else:
            context = enter_key(key, context)
            empty = key.value_count == 0

            for value in key.values():
                yield self._value_line(path, key, value, context)

        if (subkey_list := key.subkey_list) is not None:
            if subkey_list.count:
                empty = False

            for subkey in subkey_list:
                yield from self._walk(path, subkey, context)

        if empty and not options.only_values:
            yield f"{self._time_prefix(key)}{' ' * HEX_TYPE_WIDTH if options.hex_type else ''}{path}"

    def _value_line(self, path: str, key: KeyNode, value: KeyValue, context: TraversalContext) -> str:
        options = self.options
        path = f"{path}/{value.name if value.raw_name else '@'}"
        rendered = render_value(value.type, value.data, context, options.all_string)

        if options.hex_type:
            line = f"[{value.type:08X}:{value.size:08X}] {path} = {rendered}"
        else:
            line = f"{path} [{signed32(value.type)}:{value.size}] = {rendered}"

        return f"{self._time_prefix(key)}{line}"

    def _time_prefix(self, key: KeyNode) -> str:
        if not self.options.show_time:
            return ""
        return format_timestamp(key.last_write_time, self.options.time_full, True)


def enter_key(key: KeyNode, context: TraversalContext) -> TraversalContext:
    """Return the context for the values and subkeys of ``key``.

    The name is matched case sensitive on the raw name bytes, anywhere in the tree.
    """
    if not context.properties and key.raw_name == PROPERTIES:
        log.debug("Entering device properties below %s", key.name)
        return context._replace(properties=True)

    if not context.driver_packages and key.raw_name == DRIVER_PACKAGES:
        log.debug("Entering driver packages below %s", key.name)
        return context._replace(driver_packages=True)

    return context


def signed32(value: int) -> int:
    return value - 0x100000000 if value & 0x80000000 else value


def dump_hive(fh: BinaryIO, options: DumpOptions | None = None) -> Iterator[str]:
    yield from RegistryDumper(RegistryHive(fh), options).lines()
