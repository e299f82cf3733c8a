"""Broadcast relay for shared games: forwards moves between clients."""

from .server import RelayServer

__all__ = ["RelayServer"]
