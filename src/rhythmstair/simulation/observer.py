"""
observer.py
-----------

Simulated observers for running staircases offline.

LogisticObserver answers correctly with probability

    p(level) = guess + (1 - guess - lapse) * sigmoid(slope * (level - threshold))

(the sign of ``level - threshold`` is flipped when lower levels are easier).
Responses are Bernoulli draws from JAX PRNG keys, so a simulated session is
reproducible from one seed.

Examples
--------
>>> from rhythmstair.simulation import LogisticObserver, simulate_staircase
>>> from rhythmstair.staircase import create_staircase_controller
>>> from rhythmstair.utils.rng import seed
>>> observer = LogisticObserver(threshold=25.0, slope=2.0)
>>> result = simulate_staircase(create_staircase_controller("hearing"), observer, seed(0))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import jax
import jax.numpy as jnp
import jax.random as jr

from rhythmstair.staircase.controller import StaircaseController, StaircaseResult
from rhythmstair.utils.numeric import require_finite

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogisticObserver:
    """
    Parameters
    ----------
    threshold : float
        Level at the midpoint of the psychometric function.
    slope : float, default=1.0
        Steepness (> 0) in 1/level units.
    guess_rate : float, default=0.0
        Lower asymptote (e.g. 0.5 for a two-alternative task).
    lapse_rate : float, default=0.0
        Probability of an error independent of the level.
    higher_is_easier : bool, default=True
        True when larger levels make the stimulus easier to detect.
    """

    threshold: float
    slope: float = 1.0
    guess_rate: float = 0.0
    lapse_rate: float = 0.0
    higher_is_easier: bool = True

    def __post_init__(self) -> None:
        require_finite("threshold", self.threshold)
        if require_finite("slope", self.slope) <= 0:
            raise ValueError(f"slope must be positive, got {self.slope!r}")
        if not (0 <= self.guess_rate < 1 and 0 <= self.lapse_rate < 1):
            raise ValueError("guess_rate and lapse_rate must lie in [0, 1)")
        if self.guess_rate + self.lapse_rate >= 1:
            raise ValueError("guess_rate + lapse_rate must be < 1")

    def p_correct(self, level) -> jnp.ndarray:
        """Probability of a correct response at ``level`` (scalar or array)."""
        delta = jnp.asarray(level, dtype=jnp.float32) - self.threshold
        if not self.higher_is_easier:
            delta = -delta
        g = jax.nn.sigmoid(self.slope * delta)
        return self.guess_rate + (1.0 - self.guess_rate - self.lapse_rate) * g

    def respond(self, level: float, key: jax.Array) -> bool:
        """Draw one response at ``level``."""
        return bool(jr.bernoulli(key, self.p_correct(level)))


def simulate_staircase(
    controller: StaircaseController,
    observer: LogisticObserver,
    key: jax.Array,
) -> StaircaseResult:
    """
    Run ``controller`` with ``observer`` until the staircase terminates.

    Parameters
    ----------
    controller : StaircaseController
        Controller to drive; trials are appended to its history.
    observer : LogisticObserver
    key : jax.Array
        PRNG key; split once per trial.

    Returns
    -------
    StaircaseResult
    """
    while not controller.is_converged():
        key, subkey = jr.split(key)
        level = controller.get_current_level()
        response = observer.respond(level, subkey)
        controller.record_trial(response)
    result = controller.get_result()
    logger.debug(
        "simulated run finished: threshold=%.3f trials=%d reversals=%d",
        result.threshold,
        result.total_trials,
        result.total_reversals,
    )
    return result
