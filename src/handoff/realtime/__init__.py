"""Client-side synchronization of verification sessions."""

from handoff.realtime.buffers import EditBuffer
from handoff.realtime.synchronizer import RealtimeSynchronizer

__all__ = ["EditBuffer", "RealtimeSynchronizer"]
