"""The state of a node's blockchain synchronisation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .primitives import decode_quantity, encode_quantity

_RPC_KEYS = ("startingBlock", "currentBlock", "highestBlock")
_SUBSCRIPTION_KEYS = ("StartingBlock", "CurrentBlock", "HighestBlock")


def _info_from(data: Mapping, keys: tuple[str, str, str]) -> SyncInfo:
    try:
        starting, current, highest = (data[key] for key in keys)
    except KeyError as exc:
        raise ValueError(f"missing field `{exc.args[0]}`") from None
    return SyncInfo(
        starting_block=decode_quantity(starting),
        current_block=decode_quantity(current),
        highest_block=decode_quantity(highest),
    )


@dataclass(frozen=True)
class SyncInfo:
    """Progress of an ongoing synchronisation."""

    starting_block: int
    current_block: int
    highest_block: int

    @classmethod
    def from_json(cls, data: Any) -> SyncInfo:
        """Decode the camel-case object returned by eth_syncing."""
        if not isinstance(data, Mapping):
            raise ValueError("sync info must be a JSON object")
        return _info_from(data, _RPC_KEYS)

    def to_json(self) -> dict:
        """Encode as the camel-case object returned by eth_syncing."""
        return {
            "startingBlock": encode_quantity(self.starting_block),
            "currentBlock": encode_quantity(self.current_block),
            "highestBlock": encode_quantity(self.highest_block),
        }


@dataclass(frozen=True)
class SyncState:
    """Either syncing, with its progress in ``info``, or not syncing (``info`` is None)."""

    info: SyncInfo | None = None

    @property
    def is_syncing(self) -> bool:
        """True while the node is syncing."""
        return self.info is not None

    @classmethod
    def from_json(cls, data: Any) -> SyncState:
        """Decode ``false``, a sync info object, or a subscription sync status."""
        if isinstance(data, bool):
            if data:
                raise ValueError("expected object or `false`, got `true`")
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("data did not match any variant of SyncState")
        try:
            return cls(_info_from(data, _RPC_KEYS))
        except ValueError:
            pass
        return cls._from_subscription(data)

    @classmethod
    def _from_subscription(cls, data: Mapping) -> SyncState:
        syncing = data.get("syncing")
        if not isinstance(syncing, bool):
            raise ValueError("data did not match any variant of SyncState")
        status = data.get("status")
        info = None
        if status is not None:
            if not isinstance(status, Mapping):
                raise ValueError("data did not match any variant of SyncState")
            info = _info_from(status, _SUBSCRIPTION_KEYS)
        if info is None and not syncing:
            return cls()
        if info is not None and syncing:
            return cls(info)
        raise ValueError("expected object or `syncing = false`, got `syncing = true`")

    def to_json(self) -> Any:
        """Encode as the sync info object, or ``False`` when not syncing."""
        return False if self.info is None else self.info.to_json()