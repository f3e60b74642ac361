from __future__ import annotations

import io
import struct
import time
from typing import TYPE_CHECKING, BinaryIO

import pytest

if TYPE_CHECKING:
    from collections.abc import Iterator

HBIN_HEADER_SIZE = 0x20
KEY_COMP_NAME = 0x20
VALUE_COMP_NAME = 0x01


class HiveBuilder:
    """Assemble a minimal registry hive in memory.

    Cells are appended to a single hive bin, so children have to be created
    before the keys referencing them.
    """

    def __init__(self, major: int = 1, minor: int = 5):
        self.major = major
        self.minor = minor
        self.bins = bytearray(HBIN_HEADER_SIZE)

    def cell(self, payload: bytes) -> int:
        offset = len(self.bins)
        size = (len(payload) + 4 + 7) & ~7
        self.bins += struct.pack("<i", -size) + payload.ljust(size - 4, b"\x00")
        return offset

    def value(
        self,
        name: str | bytes,
        value_type: int,
        data: bytes,
        comp_name: bool = True,
        inline: bool | None = None,
    ) -> int:
        name_blob = encode_name(name, comp_name)

        if inline is None:
            inline = len(data) <= 4

        if inline:
            data_length = len(data) | 0x80000000
            data_offset = int.from_bytes(data[:4].ljust(4, b"\x00"), "little")
        else:
            data_length = len(data)
            data_offset = self.cell(data) if data else 0xFFFFFFFF

        return self._value(name_blob, value_type, data_length, data_offset, comp_name)

    def big_value(self, name: str, value_type: int, data: bytes, chunk_size: int = 16344) -> int:
        segments = [self.cell(data[idx : idx + chunk_size]) for idx in range(0, len(data), chunk_size)]
        segment_list = self.cell(struct.pack(f"<{len(segments)}I", *segments))
        big_data = self.cell(struct.pack("<2sHI", b"db", len(segments), segment_list))
        return self._value(encode_name(name, True), value_type, len(data), big_data, True)

    def _value(self, name_blob: bytes, value_type: int, data_length: int, data_offset: int, comp_name: bool) -> int:
        payload = struct.pack(
            "<2sHIIIHH",
            b"vk",
            len(name_blob),
            data_length,
            data_offset,
            value_type & 0xFFFFFFFF,
            VALUE_COMP_NAME if comp_name else 0,
            0,
        )
        return self.cell(payload + name_blob)

    def index(self, signature: bytes, offsets: list[int]) -> int:
        if signature in (b"lf", b"lh"):
            entries = b"".join(struct.pack("<II", offset, 0x12345678) for offset in offsets)
        else:
            entries = b"".join(struct.pack("<I", offset) for offset in offsets)

        return self.cell(struct.pack("<2sH", signature, len(offsets)) + entries)

    def key(
        self,
        name: str | bytes,
        values: list[int] | None = None,
        subkeys: list[int] | None = None,
        subkey_list: int | None = None,
        list_type: bytes = b"lf",
        timestamp: int = 0,
        comp_name: bool = True,
    ) -> int:
        values = values or []
        name_blob = encode_name(name, comp_name)

        if subkeys is not None:
            subkey_list = self.index(list_type, subkeys)

        value_list = self.cell(struct.pack(f"<{len(values)}I", *values)) if values else 0xFFFFFFFF

        payload = struct.pack(
            "<2sHQII2I2I2I7IHH",
            b"nk",
            KEY_COMP_NAME if comp_name else 0,
            timestamp,
            0,
            0,
            len(subkeys or []),
            0,
            0xFFFFFFFF if subkey_list is None else subkey_list,
            0xFFFFFFFF,
            len(values),
            value_list,
            0xFFFFFFFF,
            0xFFFFFFFF,
            0,
            0,
            0,
            0,
            0,
            len(name_blob),
            0,
        )
        return self.cell(payload + name_blob)

    def build(self, root: int) -> BinaryIO:
        bins = bytearray(self.bins)
        bins += b"\x00" * (-len(bins) % 0x1000)
        bins[:HBIN_HEADER_SIZE] = struct.pack("<4sIIQQI", b"hbin", 0, len(bins), 0, 0, 0).ljust(HBIN_HEADER_SIZE, b"\x00")

        header = bytearray(
            struct.pack(
                "<4sIIQIIIIIII",
                b"regf",
                1,
                1,
                0,
                self.major,
                self.minor,
                0,
                1,
                root,
                len(bins),
                1,
            ).ljust(0x1000, b"\x00")
        )

        checksum = 0
        for (dword,) in struct.iter_unpack("<I", bytes(header[:508])):
            checksum ^= dword
        header[508:512] = struct.pack("<I", checksum)

        return io.BytesIO(bytes(header + bins))


def encode_name(name: str | bytes, comp_name: bool) -> bytes:
    if isinstance(name, bytes):
        return name
    return name.encode("latin1") if comp_name else name.encode("utf-16-le")


@pytest.fixture
def hive_builder() -> HiveBuilder:
    return HiveBuilder()


@pytest.fixture(autouse=True)
def local_timezone(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("TZ", "UTC")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
