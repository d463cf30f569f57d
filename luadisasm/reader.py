"""Cursor over an in-memory bytecode buffer."""

from __future__ import annotations

import struct

from .errors import StringDecodeError, TruncatedChunkError, UnsupportedWidthError


class ByteReader:
    """Decode primitive fields from an owned byte buffer.

    Every read advances the cursor by exactly the number of bytes it consumed.
    Multi-byte integers are little-endian; the chunk header is validated
    against that before anything else is read.
    """

    def __init__(self, buffer: bytes) -> None:
        self._buffer = bytes(buffer)
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._buffer) - self._offset

    def as_bytes(self) -> bytes:
        return self._buffer

    def _take(self, count: int) -> bytes:
        if count < 0:
            raise TruncatedChunkError(f"negative read of {count} bytes at offset {self._offset}")
        end = self._offset + count
        if end > len(self._buffer):
            raise TruncatedChunkError(
                f"read of {count} byte(s) at offset {self._offset} exceeds buffer size {len(self._buffer)}"
            )
        data = self._buffer[self._offset : end]
        self._offset = end
        return data

    def byte(self) -> int:
        return self._take(1)[0]

    def bytes(self, count: int) -> bytes:
        return self._take(count)

    def short(self) -> int:
        low = self.byte()
        high = self.byte()
        return low | (high << 8)

    def unsigned32(self) -> int:
        return int.from_bytes(self._take(4), "little")

    def unsigned64(self) -> int:
        return int.from_bytes(self._take(8), "little")

    def int(self, width: int) -> int:
        if width == 4:
            return self.unsigned32()
        if width == 8:
            return self.unsigned64()
        raise UnsupportedWidthError(f"unsupported integer width {width}")

    def number(self, half_width: int) -> float:
        """Read a double stored as two ``half_width`` words, low half first."""

        low = self.int(half_width)
        high = self.int(half_width)
        bits = ((high << 32) | low) & 0xFFFFFFFFFFFFFFFF
        return struct.unpack("<d", bits.to_bytes(8, "little"))[0]

    def string(self, length_width: int) -> str:
        size = self.int(length_width)
        if size == 0:
            return ""
        data = self._take(size)[:-1]
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise StringDecodeError(
                f"string at offset {self._offset - size} is not valid UTF-8: {exc}"
            ) from exc
