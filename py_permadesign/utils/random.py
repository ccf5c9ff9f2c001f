"""
Random number generation utilities.

All stochastic parts of the engine (elevation jitter, interior sampling,
zone placement) draw from an Alea PRNG instance. Components accept an
explicit ``prng`` argument; when none is given they fall back to the
process-wide instance managed here. Python's ``random`` module is not used
so that a seed fully determines a generated design.
"""

import uuid
from typing import Optional

from ..core.alea_prng import AleaPRNG

# Global PRNG instance
_prng = None


def set_random_seed(seed: str) -> None:
    """
    Reseed the process-wide Alea PRNG.

    Args:
        seed: Seed string to use
    """
    global _prng
    _prng = AleaPRNG(seed)


def get_prng() -> AleaPRNG:
    """
    Get the process-wide Alea PRNG, creating it on first use.

    Returns:
        AleaPRNG instance
    """
    global _prng
    if _prng is None:
        _prng = AleaPRNG("default")
    return _prng


def make_prng(seed: Optional[str] = None) -> AleaPRNG:
    """
    Build an independent PRNG.

    Args:
        seed: Seed string; a random one is drawn when omitted

    Returns:
        New AleaPRNG instance
    """
    return AleaPRNG(seed if seed is not None else uuid.uuid4().hex[:8])
