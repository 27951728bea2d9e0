"""Fixed-size hashes, raw byte strings and hex-encoded quantities."""

from __future__ import annotations

import functools
import string
from dataclasses import dataclass
from typing import ClassVar

_U64_MAX = (1 << 64) - 1
_MAX_QUANTITY_DIGITS = 64
_HEX_DIGITS = frozenset(string.hexdigits)


def _is_hex(text: str) -> bool:
    return all(char in _HEX_DIGITS for char in text)


@functools.total_ordering
class FixedHash:
    """A big-endian byte string of a fixed length, encoded as 0x-prefixed hex."""

    SIZE: ClassVar[int] = 0
    __slots__ = ("_data",)

    def __init__(self, data: bytes | None = None) -> None:
        size = type(self).SIZE
        if size <= 0:
            raise TypeError(f"{type(self).__name__} has no fixed size")
        raw = bytes(size) if data is None else bytes(data)
        if len(raw) != size:
            raise ValueError(
                f"{type(self).__name__} needs {size} bytes, got {len(raw)}"
            )
        self._data = raw

    @classmethod
    def from_low_u64_be(cls, value: int) -> FixedHash:
        """Build a hash whose lowest eight bytes hold ``value`` big-endian."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError("value must be an integer")
        if not 0 <= value <= _U64_MAX:
            raise ValueError(f"{value} does not fit in 64 bits")
        low = value.to_bytes(8, "big")
        if cls.SIZE >= 8:
            return cls(bytes(cls.SIZE - 8) + low)
        return cls(low[-cls.SIZE:])

    @classmethod
    def from_uint(cls, value: int) -> FixedHash:
        """Build a hash holding the big-endian form of an unsigned integer."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError("value must be an integer")
        if value < 0:
            raise ValueError("value must not be negative")
        try:
            return cls(value.to_bytes(cls.SIZE, "big"))
        except OverflowError as exc:
            raise ValueError(f"{value} does not fit in {cls.SIZE} bytes") from exc

    @classmethod
    def from_hex(cls, text: str) -> FixedHash:
        """Parse a 0x-prefixed hex string of exactly the hash's length."""
        if not isinstance(text, str):
            raise ValueError(f"expected a hex string, got {type(text).__name__}")
        if not text.startswith("0x"):
            raise ValueError("0x prefix is missing")
        digits = text[2:]
        if len(digits) != cls.SIZE * 2:
            raise ValueError(
                f"invalid length {len(digits)}, expected {cls.SIZE * 2} hex digits"
            )
        if not _is_hex(digits):
            raise ValueError("invalid hex character")
        return cls(bytes.fromhex(digits))

    def to_json(self) -> str:
        """Return the full 0x-prefixed lower-case hex form."""
        return "0x" + self._data.hex()

    def low_u64(self) -> int:
        """Return the lowest eight bytes read as a big-endian integer."""
        return int.from_bytes(self._data[-8:], "big")

    def __bytes__(self) -> bytes:
        return self._data

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._data == other._data

    def __lt__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._data < other._data

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._data))

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self.to_json()}')"

    def __str__(self) -> str:
        return f"0x{self._data[:2].hex()}\u2026{self._data[-2:].hex()}"

    def __format__(self, spec: str) -> str:
        if spec == "":
            return str(self)
        if spec == "x":
            return self._data.hex()
        if spec == "#x":
            return self.to_json()
        if spec == "X":
            return self._data.hex().upper()
        if spec == "#X":
            return "0x" + self._data.hex().upper()
        raise ValueError(f"unsupported format {spec!r} for {type(self).__name__}")


class H64(FixedHash):
    """8-byte hash."""

    SIZE = 8
    __slots__ = ()


class H128(FixedHash):
    """16-byte hash."""

    SIZE = 16
    __slots__ = ()


class H160(FixedHash):
    """20-byte hash, used for addresses."""

    SIZE = 20
    __slots__ = ()


class H256(FixedHash):
    """32-byte hash."""

    SIZE = 32
    __slots__ = ()


class H512(FixedHash):
    """64-byte hash."""

    SIZE = 64
    __slots__ = ()


class H520(FixedHash):
    """65-byte hash."""

    SIZE = 65
    __slots__ = ()


class H2048(FixedHash):
    """256-byte logs bloom."""

    SIZE = 256
    __slots__ = ()


Address = H160


@dataclass(frozen=True)
class Bytes:
    """Raw bytes, encoded as 0x-prefixed hex."""

    data: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def from_json(cls, value: str) -> Bytes:
        """Parse a 0x-prefixed hex string with an even number of characters."""
        if not isinstance(value, str):
            raise ValueError("a 0x-prefixed hex-encoded vector of bytes was expected")
        if len(value) < 2 or not value.startswith("0x") or len(value) % 2:
            raise ValueError("invalid format")
        digits = value[2:]
        if not _is_hex(digits):
            raise ValueError("invalid hex")
        return cls(bytes.fromhex(digits))

    def to_json(self) -> str:
        """Return the 0x-prefixed hex form."""
        return "0x" + self.data.hex()

    def __bytes__(self) -> bytes:
        return self.data

    def __len__(self) -> int:
        return len(self.data)


def encode_quantity(value: int) -> str:
    """Encode a non-negative integer as a 0x-prefixed hex quantity."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError("quantity must be an integer")
    if value < 0:
        raise ValueError("quantity must not be negative")
    return f"0x{value:x}"


def decode_quantity(text: str) -> int:
    """Decode a 0x-prefixed hex quantity of at most 256 bits."""
    if not isinstance(text, str):
        raise ValueError(f"expected a hex string, got {type(text).__name__}")
    if not text.startswith("0x"):
        raise ValueError("0x prefix is missing")
    digits = text[2:]
    if not digits:
        raise ValueError("empty quantity")
    if len(digits) > _MAX_QUANTITY_DIGITS:
        raise ValueError("quantity does not fit in 256 bits")
    if not _is_hex(digits):
        raise ValueError("invalid hex character")
    return int(digits, 16)


def uint_from_be_bytes(data: bytes) -> int:
    """Read a big-endian byte string as an unsigned integer."""
    return int.from_bytes(bytes(data), "big")