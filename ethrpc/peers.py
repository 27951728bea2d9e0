"""Peer information reported by a Parity node."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .primitives import decode_quantity, encode_quantity

_U32_BITS = 32
_USIZE_BITS = 64


def _mapping(data: Any, what: str) -> Mapping:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a JSON object")
    return data


def _field(data: Mapping, key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field `{key}`") from None


def _uint(data: Mapping, key: str, bits: int) -> int:
    value = _field(data, key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field `{key}` must be an integer")
    if not 0 <= value < (1 << bits):
        raise ValueError(f"field `{key}` does not fit in {bits} bits")
    return value


def _string(data: Mapping, key: str) -> str:
    value = _field(data, key)
    if not isinstance(value, str):
        raise ValueError(f"field `{key}` must be a string")
    return value


@dataclass
class PeerNetworkInfo:
    """Remote and local addresses of a connection."""

    remote_address: str
    local_address: str

    @classmethod
    def from_json(cls, data: Any) -> PeerNetworkInfo:
        """Decode from a JSON object."""
        data = _mapping(data, "network info")
        return cls(_string(data, "remoteAddress"), _string(data, "localAddress"))

    def to_json(self) -> dict:
        """Encode as a JSON object."""
        return {"remoteAddress": self.remote_address, "localAddress": self.local_address}


@dataclass
class EthProtocolInfo:
    """Version, difficulty and chain head seen through the eth protocol."""

    version: int
    difficulty: int | None
    head: str

    @classmethod
    def from_json(cls, data: Any) -> EthProtocolInfo:
        """Decode from a JSON object."""
        data = _mapping(data, "eth protocol info")
        difficulty = data.get("difficulty")
        return cls(
            version=_uint(data, "version", _U32_BITS),
            difficulty=None if difficulty is None else decode_quantity(difficulty),
            head=_string(data, "head"),
        )

    def to_json(self) -> dict:
        """Encode as a JSON object."""
        return {
            "version": self.version,
            "difficulty": None if self.difficulty is None else encode_quantity(self.difficulty),
            "head": self.head,
        }


@dataclass
class PipProtocolInfo:
    """Version, difficulty and chain head seen through the pip protocol."""

    version: int
    difficulty: int
    head: str

    @classmethod
    def from_json(cls, data: Any) -> PipProtocolInfo:
        """Decode from a JSON object."""
        data = _mapping(data, "pip protocol info")
        return cls(
            version=_uint(data, "version", _U32_BITS),
            difficulty=decode_quantity(_field(data, "difficulty")),
            head=_string(data, "head"),
        )

    def to_json(self) -> dict:
        """Encode as a JSON object."""
        return {
            "version": self.version,
            "difficulty": encode_quantity(self.difficulty),
            "head": self.head,
        }


@dataclass
class PeerProtocolsInfo:
    """Per-protocol details of a peer."""

    eth: EthProtocolInfo | None
    pip: PipProtocolInfo | None

    @classmethod
    def from_json(cls, data: Any) -> PeerProtocolsInfo:
        """Decode from a JSON object."""
        data = _mapping(data, "protocols info")
        eth = data.get("eth")
        pip = data.get("pip")
        return cls(
            eth=None if eth is None else EthProtocolInfo.from_json(eth),
            pip=None if pip is None else PipProtocolInfo.from_json(pip),
        )

    def to_json(self) -> dict:
        """Encode as a JSON object."""
        return {
            "eth": None if self.eth is None else self.eth.to_json(),
            "pip": None if self.pip is None else self.pip.to_json(),
        }


@dataclass
class ParityPeerInfo:
    """Details of one peer."""

    id: str | None
    name: str
    caps: list[str]
    network: PeerNetworkInfo
    protocols: PeerProtocolsInfo

    @classmethod
    def from_json(cls, data: Any) -> ParityPeerInfo:
        """Decode from a JSON object."""
        data = _mapping(data, "peer info")
        peer_id = data.get("id")
        if peer_id is not None and not isinstance(peer_id, str):
            raise ValueError("field `id` must be a string")
        caps = _field(data, "caps")
        if not isinstance(caps, list) or not all(isinstance(cap, str) for cap in caps):
            raise ValueError("field `caps` must be an array of strings")
        return cls(
            id=peer_id,
            name=_string(data, "name"),
            caps=list(caps),
            network=PeerNetworkInfo.from_json(_field(data, "network")),
            protocols=PeerProtocolsInfo.from_json(_field(data, "protocols")),
        )

    def to_json(self) -> dict:
        """Encode as a JSON object."""
        return {
            "id": self.id,
            "name": self.name,
            "caps": list(self.caps),
            "network": self.network.to_json(),
            "protocols": self.protocols.to_json(),
        }


@dataclass
class ParityPeerType:
    """Active, connected and maximum peer counts, with every peer's details."""

    active: int
    connected: int
    max: int
    peers: list[ParityPeerInfo]

    @classmethod
    def from_json(cls, data: Any) -> ParityPeerType:
        """Decode from a JSON object."""
        data = _mapping(data, "peers")
        peers = _field(data, "peers")
        if not isinstance(peers, list):
            raise ValueError("field `peers` must be an array")
        return cls(
            active=_uint(data, "active", _USIZE_BITS),
            connected=_uint(data, "connected", _USIZE_BITS),
            max=_uint(data, "max", _U32_BITS),
            peers=[ParityPeerInfo.from_json(peer) for peer in peers],
        )

    def to_json(self) -> dict:
        """Encode as a JSON object."""
        return {
            "active": self.active,
            "connected": self.connected,
            "max": self.max,
            "peers": [peer.to_json() for peer in self.peers],
        }