"""
Binary matching package.

- matching: pure match / cap / flush arithmetic
- engine: leg accumulation and per-cycle matching against the database
"""

from compensation.services.binary.engine import BinaryCyclePlan, BinaryEngine, binary_key
from compensation.services.binary.matching import MatchResult, compute_match


__all__ = [
    "BinaryCyclePlan",
    "BinaryEngine",
    "MatchResult",
    "binary_key",
    "compute_match",
]
