"""Transports carrying JSON-RPC requests over HTTP, WebSocket and IPC, with batching and a background event loop."""