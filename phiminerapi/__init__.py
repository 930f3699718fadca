"""Mining-farm monitoring API (JSON-RPC and HTML over TCP) with hex, hash, logging and worker utilities."""

__version__ = "1.2.4"