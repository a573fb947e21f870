"""
utils
=====

Shared helpers for rhythmstair.

- numeric : require_finite() for config fields and finite_or_default()
  for collaborator-supplied numbers.
- rng : seed() and split() for JAX PRNG keys.
"""

from .numeric import finite_or_default, require_finite
from .rng import seed, split

__all__ = [
    "finite_or_default",
    "require_finite",
    "seed",
    "split",
]
