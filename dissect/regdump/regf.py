from __future__ import annotations

import io
import logging
import os
from functools import cached_property
from typing import TYPE_CHECKING, BinaryIO

from dissect.regdump.c_regdump import (
    CM_KEY_VALUE_BIG,
    DATA_INLINE,
    EMPTY_CELL,
    HBIN_OFFSET,
    HBIN_SIGNATURE,
    KEY,
    REGF_SIGNATURE,
    VALUE,
    c_regdump,
)
from dissect.regdump.exceptions import HiveReadError, InvalidSignatureError, MalformedHiveError
from dissect.regdump.util import decode_name

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)
log.setLevel(os.getenv("DISSECT_LOG_REGDUMP", "CRITICAL"))


# TODO: Add `: TypeAlias` when we drop Python 3.9
CellType = "IndexLeaf | FastLeaf | HashLeaf | IndexRoot | KeyNode | KeyValue | BigData"

STABLE = 0


class RegistryHive:
    """A registry hive, loaded into memory as a whole.

    All cells are addressed relative to the first hive bin, which starts right
    after the base block.
    """

    def __init__(self, fh: BinaryIO):
        fh.seek(0)
        if fh.read(len(REGF_SIGNATURE)) != REGF_SIGNATURE:
            raise InvalidSignatureError("invalid file ('regf' signature not found)")

        fh.seek(HBIN_OFFSET)
        if fh.read(len(HBIN_SIGNATURE)) != HBIN_SIGNATURE:
            raise InvalidSignatureError("invalid file ('hbin' signature not found)")

        size = fh.seek(0, io.SEEK_END)
        fh.seek(0)
        self.buf = fh.read(size)
        if len(self.buf) != size:
            raise HiveReadError("read error")

        self.header = c_regdump._HBASE_BLOCK(self.buf)
        self.filename = self.header.FileName.rstrip("\x00")

        # Big data cells were introduced with hive version 1.4
        self.big_data = self.header.Major > 1 or (self.header.Major == 1 and self.header.Minor > 3)

        self.dirty = xor32_crc(self.buf[:508]) != self.header.CheckSum
        if self.dirty:
            log.warning("Checksum failed, the %r hive is dirty, keys and values may be stale", self.filename)
        else:
            log.debug("Hive %r checksum OK", self.filename)

        self.in_transaction = self.header.Sequence1 != self.header.Sequence2
        if self.in_transaction:
            log.warning("The hive %r is undergoing a transaction, keys and values may be stale", self.filename)

        log.debug(
            "Loaded hive %r version %d.%d (%d bytes, big data %s)",
            self.filename,
            self.header.Major,
            self.header.Minor,
            size,
            "enabled" if self.big_data else "disabled",
        )

    def root(self) -> KeyNode:
        root = self.cell(self.header.RootCell)
        if not isinstance(root, KeyNode):
            raise MalformedHiveError(f"Expected KeyNode as root cell, got {root.__class__.__name__}")
        return root

    def cell_data(self, offset: int) -> bytes:
        """Return the payload of the cell at ``offset``, without its size field."""
        start = HBIN_OFFSET + offset
        if offset < 0 or start + 4 > len(self.buf):
            raise MalformedHiveError(f"Cell offset {offset:#x} is outside of the hive")

        size = abs(c_regdump.int32(self.buf[start : start + 4]))
        if size < 4 or start + size > len(self.buf):
            raise MalformedHiveError(f"Cell at {offset:#x} has an invalid size {size:#x}")

        return self.buf[start + 4 : start + size]

    def cell(self, offset: int) -> CellType:
        return self.parse_cell_data(self.cell_data(offset), offset)

    def parse_cell_data(self, data: bytes, offset: int = 0) -> CellType:
        sig = data[:2]

        if cls := _CELL_CLASSES.get(sig):
            return cls(self, data)

        raise MalformedHiveError(f"Unknown cell signature {sig!r} at {offset:#x}")


class Cell:
    __signature__ = b""
    __struct__ = None

    def __init__(self, hive: RegistryHive, data: bytes):
        self.hive = hive

        if data[:2] != self.__signature__:
            raise MalformedHiveError(
                f"Invalid {self.__class__.__name__} signature {data[:2]!r}, expected {self.__signature__!r}"
            )

        try:
            self.cell = self.__struct__(data)
        except EOFError as e:
            raise MalformedHiveError(f"Truncated {self.__class__.__name__} cell ({len(data)} bytes)") from e


class KeyNode(Cell):
    __signature__ = b"nk"
    __struct__ = c_regdump._CM_KEY_NODE

    def __init__(self, hive: RegistryHive, data: bytes):
        super().__init__(hive, data)

        name_length = self.cell.NameLength
        self.raw_name = data[len(self.__struct__) :][:name_length]
        if len(self.raw_name) != name_length:
            raise MalformedHiveError(f"KeyNode name runs past its cell ({name_length} bytes)")

        self.name = decode_name(self.raw_name, bool(self.cell.Flags & KEY.COMP_NAME))

    def __repr__(self) -> str:
        return f"<KeyNode {self.name}>"

    @property
    def last_write_time(self) -> int:
        return self.cell.LastWriteTime

    @property
    def value_count(self) -> int:
        return self.cell.ValueList.Count

    @cached_property
    def subkey_list(self) -> IndexLeaf | FastLeaf | HashLeaf | IndexRoot | None:
        if (list_offset := self.cell.SubKeyLists[STABLE]) == EMPTY_CELL:
            return None

        subkey_list = self.hive.cell(list_offset)
        if not isinstance(subkey_list, KeyIndex):
            raise MalformedHiveError(f"Expected a subkey list for {self.name}, got {subkey_list.__class__.__name__}")

        if (num_sk := self.cell.SubKeyCounts[STABLE]) != subkey_list.count:
            log.debug(
                "KeyNode %s has %d subkeys, while the %s has %d elements",
                self.name,
                num_sk,
                subkey_list.__class__.__name__,
                subkey_list.count,
            )

        return subkey_list

    def subkeys(self) -> Iterator[KeyNode]:
        if self.subkey_list:
            yield from self.subkey_list

    def values(self) -> Iterator[KeyValue]:
        if num_values := self.value_count:
            data = self.hive.cell_data(self.cell.ValueList.List)

            if len(data) // 4 < num_values:
                raise MalformedHiveError(
                    f"Value list of key {self.name!r} holds {len(data) // 4} offsets, expected {num_values}"
                )

            yield from ValueList(self.hive, data, num_values)


class ValueList:
    def __init__(self, hive: RegistryHive, data: bytes, count: int):
        self.hive = hive
        self._values = c_regdump.uint32[count](data)

    def __iter__(self) -> Iterator[KeyValue]:
        for entry in self._values:
            value = self.hive.cell(entry)
            if not isinstance(value, KeyValue):
                raise MalformedHiveError(f"Expected KeyValue at {entry:#x}, got {value.__class__.__name__}")
            yield value


class KeyValue(Cell):
    __signature__ = b"vk"
    __struct__ = c_regdump._CM_KEY_VALUE

    def __init__(self, hive: RegistryHive, data: bytes):
        super().__init__(hive, data)
        self._raw = data

        name_length = self.cell.NameLength
        self.raw_name = data[len(self.__struct__) :][:name_length]
        if len(self.raw_name) != name_length:
            raise MalformedHiveError(f"KeyValue name runs past its cell ({name_length} bytes)")

        self.name = decode_name(self.raw_name, bool(self.cell.Flags & VALUE.COMP_NAME))

    def __repr__(self) -> str:
        return f"<KeyValue {self.name} type={self.type:#x} size={self.size}>"

    @property
    def type(self) -> int:
        return self.cell.Type

    @property
    def size(self) -> int:
        return self.cell.DataLength & ~DATA_INLINE

    @property
    def is_inline(self) -> bool:
        return bool(self.cell.DataLength & DATA_INLINE)

    @cached_property
    def is_big_value(self) -> bool:
        if not self.hive.big_data or self.is_inline or self.size <= CM_KEY_VALUE_BIG:
            return False
        return self.hive.cell_data(self.cell.Data)[:2] == BigData.__signature__

    @cached_property
    def data(self) -> bytes | bytearray:
        data_size = self.size
        if not data_size:
            return b""

        if self.is_inline:
            # The data lives in the record itself, starting at the Data field
            data = self._raw[8 : 8 + data_size]
        elif self.is_big_value:
            bd = self.hive.cell(self.cell.Data)
            return bd.read(data_size)
        else:
            data = self.hive.cell_data(self.cell.Data)[:data_size]

        if len(data) != data_size:
            raise MalformedHiveError(f"Data of value {self.name!r} is {len(data)} bytes, expected {data_size}")

        return data


class KeyIndex(Cell):
    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[KeyNode]:
        raise NotImplementedError

    @property
    def count(self) -> int:
        return self.cell.Count

    def _key(self, offset: int) -> KeyNode:
        key = self.hive.cell(offset)
        if not isinstance(key, KeyNode):
            raise MalformedHiveError(f"Expected KeyNode at {offset:#x}, got {key.__class__.__name__}")
        return key


class IndexRoot(KeyIndex):
    __signature__ = b"ri"
    __struct__ = c_regdump._CM_KEY_INDEX

    def __iter__(self) -> Iterator[KeyNode]:
        # Each entry of an index root is another subkey list, rather than a key
        for entry in self.cell.List:
            sublist = self.hive.cell(entry)
            if not isinstance(sublist, (IndexLeaf, FastLeaf, HashLeaf)):
                raise MalformedHiveError(f"Expected a leaf list at {entry:#x}, got {sublist.__class__.__name__}")
            yield from sublist


class IndexLeaf(KeyIndex):
    __signature__ = b"li"
    __struct__ = c_regdump._CM_KEY_INDEX

    def __iter__(self) -> Iterator[KeyNode]:
        for entry in self.cell.List:
            yield self._key(entry)


class HashLeaf(KeyIndex):
    __signature__ = b"lh"
    __struct__ = c_regdump._CM_KEY_HASH_INDEX

    def __iter__(self) -> Iterator[KeyNode]:
        for entry in self.cell.List:
            yield self._key(entry.Cell)


class FastLeaf(HashLeaf):
    # The hash of a fast leaf holds the first four characters of the name instead
    __signature__ = b"lf"


class BigData(Cell):
    __signature__ = b"db"
    __struct__ = c_regdump._CM_BIG_DATA

    def read(self, size: int) -> bytearray:
        """Reassemble ``size`` bytes of data from the segments of this big data cell."""
        buf = bytearray(size)

        segment_list = self.hive.cell_data(self.cell.List)
        if len(segment_list) // 4 < self.cell.Count:
            raise MalformedHiveError(f"Big data segment list holds less than {self.cell.Count} offsets")

        offset = 0
        segments = c_regdump.uint32[self.cell.Count](segment_list) if self.cell.Count else []
        for segment in segments:
            if offset >= size:
                break

            part = self.hive.cell_data(segment)[: min(CM_KEY_VALUE_BIG, size - offset)]
            if len(part) != min(CM_KEY_VALUE_BIG, size - offset):
                raise MalformedHiveError(f"Big data segment at {segment:#x} is truncated")

            buf[offset : offset + len(part)] = part
            offset += len(part)

        if offset != size:
            raise MalformedHiveError(f"Big data holds {offset} bytes, expected {size}")

        log.debug("Reassembled %d bytes from %d big data segments", size, self.cell.Count)
        return buf


_CELL_CLASSES = {
    KeyNode.__signature__: KeyNode,
    KeyValue.__signature__: KeyValue,
    IndexRoot.__signature__: IndexRoot,
    IndexLeaf.__signature__: IndexLeaf,
    FastLeaf.__signature__: FastLeaf,
    HashLeaf.__signature__: HashLeaf,
    BigData.__signature__: BigData,
}


def xor32_crc(data: bytes) -> int:
    crc = 0
    for ii in c_regdump.uint32[len(data) // 4](data):
        crc ^= ii

    return crc
