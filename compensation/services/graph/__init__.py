"""
Referral graph package.

- graph_store: sponsor chain, binary path, enrollment and placement
- downline: recursive downline aggregation over a run-wide snapshot
"""

from compensation.services.graph.downline import DownlineVolume, GraphSnapshot
from compensation.services.graph.graph_store import ChainLink, GraphStore


__all__ = [
    "ChainLink",
    "DownlineVolume",
    "GraphSnapshot",
    "GraphStore",
]
