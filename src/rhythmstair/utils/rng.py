"""
rng.py
------

Random number utilities for rhythmstair.

Simulated observers draw their responses from JAX PRNG keys so that a
simulated session is reproducible from a single integer seed.

Examples
--------
>>> from rhythmstair.utils.rng import seed, split
>>> key = seed(0)
>>> k1, k2 = split(key)
"""

from __future__ import annotations

import jax
import jax.random as jr


def seed(seed_value: int) -> jax.Array:
    """
    Create a new PRNG key from an integer seed.

    Parameters
    ----------
    seed_value : int
        Seed for random number generation.

    Returns
    -------
    jax.Array
        New PRNG key.
    """
    return jr.PRNGKey(seed_value)


def split(key: jax.Array, num: int = 2):
    """
    Split a PRNG key into multiple independent keys.

    Parameters
    ----------
    key : jax.Array
        RNG key to split.
    num : int, default=2
        Number of new keys to return.

    Returns
    -------
    jax.Array
        Array of ``num`` independent keys; unpacks like a tuple.
    """
    return jr.split(key, num=num)
