"""Ethereum JSON-RPC client: typed values, JSON-RPC messages and asynchronous transports."""

__version__ = "0.1.0"