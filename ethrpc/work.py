"""The miner's work package."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .primitives import H256, encode_quantity

_U64_MAX = (1 << 64) - 1


@dataclass(frozen=True)
class Work:
    """Proof-of-work hash, seed hash, target and, when known, the block number."""

    pow_hash: H256
    seed_hash: H256
    target: H256
    number: int | None = None

    @classmethod
    def from_json(cls, data: Any) -> Work:
        """Decode a three-element array, or a four-element one whose last is an integer."""
        if not isinstance(data, list) or len(data) not in (3, 4):
            raise ValueError(
                f"Cannot deserialize Work: expected an array of 3 or 4 items, got {data!r}"
            )
        try:
            pow_hash, seed_hash, target = (H256.from_hex(item) for item in data[:3])
        except ValueError as exc:
            raise ValueError(f"Cannot deserialize Work: {exc}") from exc
        number = None
        if len(data) == 4:
            number = data[3]
            if isinstance(number, bool) or not isinstance(number, int):
                raise ValueError(
                    f"Cannot deserialize Work: block number must be an integer, got {number!r}"
                )
            if not 0 <= number <= _U64_MAX:
                raise ValueError(
                    f"Cannot deserialize Work: block number {number} does not fit in 64 bits"
                )
        return cls(pow_hash, seed_hash, target, number)

    def to_json(self) -> list:
        """Encode as an array; the block number, if any, as a hex quantity."""
        items: list[str] = [
            self.pow_hash.to_json(),
            self.seed_hash.to_json(),
            self.target.to_json(),
        ]
        if self.number is not None:
            items.append(encode_quantity(self.number))
        return items