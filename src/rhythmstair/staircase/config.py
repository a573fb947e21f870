"""
config.py
---------

Configuration for the adaptive staircase engine.

defines:
- StaircaseConfig: immutable, validated parameter set for one staircase run.
- Preset configurations for the four perceptual tests.

Notes
-----
- Configs are frozen dataclasses. Overrides go through ``replace()`` or
  ``from_mapping()``, both of which reject unknown fields.
- Invalid values raise ``ValueError`` at construction time.
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from typing import Any, Literal, Mapping

from rhythmstair.utils.numeric import require_finite

Direction = Literal["up", "down"]
StepMode = Literal["additive", "multiplicative"]

_RULE_PATTERN = re.compile(r"^(\d+)down(\d+)up$")


def parse_rule(rule: str) -> tuple[int, int]:
    """
    Parse an ``"<n>down<m>up"`` rule string.

    Parameters
    ----------
    rule : str
        Rule such as ``"2down1up"``.

    Returns
    -------
    (n_down, m_up) : tuple of int
        Consecutive correct responses required to decrease the level, and
        consecutive incorrect responses required to increase it.
    """
    match = _RULE_PATTERN.match(rule) if isinstance(rule, str) else None
    if match is None:
        raise ValueError(f"rule must look like '2down1up', got {rule!r}")
    n_down, m_up = int(match.group(1)), int(match.group(2))
    if n_down < 1 or m_up < 1:
        raise ValueError(f"rule counts must be >= 1, got {rule!r}")
    return n_down, m_up


@dataclass(frozen=True)
class StaircaseConfig:
    """
    Parameters of one adaptive staircase.

    Parameters
    ----------
    initial_level : float
        Starting stimulus level on the abstract level axis.
    initial_step_size : float
        Step magnitude used before the first reversal.
    step_sizes : tuple of float
        Step magnitude after the 1st, 2nd, ... reversal. Once exhausted the
        last value repeats.
    min_level, max_level : float
        Inclusive clamp bounds for the level.
    target_reversals : int
        Reversals after which convergence may be declared.
    min_trials, max_trials : int
        Floor and hard ceiling on the number of trials.
    start_direction : {"up", "down"}
        Direction reported before the first step.
    rule : str, default="2down1up"
        n-down/m-up decision rule.
    step_mode : {"additive", "multiplicative"}, default="additive"
        Additive steps add/subtract the step size. Multiplicative steps
        multiply the level by the step factor on a decrease and divide by it
        on an increase; factors must lie in (0, 1).
    """

    initial_level: float = 40.0
    initial_step_size: float = 8.0
    step_sizes: tuple[float, ...] = (8.0, 8.0, 4.0, 4.0, 2.0, 2.0)
    min_level: float = 0.0
    max_level: float = 80.0
    target_reversals: int = 6
    min_trials: int = 6
    max_trials: int = 50
    start_direction: Direction = "down"
    rule: str = "2down1up"
    step_mode: StepMode = "additive"

    def __post_init__(self) -> None:
        # Normalise sequences so that equality and hashing behave.
        if isinstance(self.step_sizes, (str, bytes)) or not hasattr(
            self.step_sizes, "__iter__"
        ):
            raise ValueError(f"step_sizes must be a sequence, got {self.step_sizes!r}")
        object.__setattr__(self, "step_sizes", tuple(self.step_sizes))

        initial = require_finite("initial_level", self.initial_level)
        lo = require_finite("min_level", self.min_level)
        hi = require_finite("max_level", self.max_level)
        if lo >= hi:
            raise ValueError(f"min_level ({lo}) must be < max_level ({hi})")
        if not lo <= initial <= hi:
            raise ValueError(
                f"initial_level ({initial}) must lie in [{lo}, {hi}]"
            )

        if not self.step_sizes:
            raise ValueError("step_sizes must not be empty")
        steps = [self.initial_step_size, *self.step_sizes]
        for i, step in enumerate(steps):
            name = "initial_step_size" if i == 0 else f"step_sizes[{i - 1}]"
            if require_finite(name, step) <= 0:
                raise ValueError(f"{name} must be > 0, got {step!r}")

        if self.step_mode not in ("additive", "multiplicative"):
            raise ValueError(
                f"step_mode must be 'additive' or 'multiplicative', got {self.step_mode!r}"
            )
        if self.step_mode == "multiplicative":
            if any(step >= 1 for step in steps):
                raise ValueError("multiplicative step factors must lie in (0, 1)")
            if lo <= 0:
                raise ValueError("multiplicative staircases need min_level > 0")

        for name in ("target_reversals", "min_trials", "max_trials"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an int, got {value!r}")
        if self.target_reversals < 1:
            raise ValueError(
                f"target_reversals must be >= 1, got {self.target_reversals}"
            )
        if self.min_trials < 1:
            raise ValueError(f"min_trials must be >= 1, got {self.min_trials}")
        if self.max_trials < self.min_trials:
            raise ValueError(
                f"max_trials ({self.max_trials}) must be >= min_trials ({self.min_trials})"
            )

        if self.start_direction not in ("up", "down"):
            raise ValueError(
                f"start_direction must be 'up' or 'down', got {self.start_direction!r}"
            )
        parse_rule(self.rule)

    @property
    def n_down(self) -> int:
        """Consecutive correct responses needed to decrease the level."""
        return parse_rule(self.rule)[0]

    @property
    def m_up(self) -> int:
        """Consecutive incorrect responses needed to increase the level."""
        return parse_rule(self.rule)[1]

    @property
    def level_range(self) -> float:
        return self.max_level - self.min_level

    def clamp(self, level: float) -> float:
        """Saturate ``level`` into ``[min_level, max_level]``."""
        return min(self.max_level, max(self.min_level, level))

    def replace(self, **overrides: Any) -> StaircaseConfig:
        """
        Return a validated copy with some fields replaced.

        Raises
        ------
        ValueError
            If an override names an unknown field or produces an invalid config.
        """
        unknown = set(overrides) - _FIELD_NAMES
        if unknown:
            raise ValueError(f"Unknown staircase config fields: {sorted(unknown)}")
        return dataclasses.replace(self, **overrides)

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, Any], *, base: StaircaseConfig | None = None
    ) -> StaircaseConfig:
        """
        Build a config from a plain mapping, starting from ``base``.

        Examples
        --------
        >>> cfg = StaircaseConfig.from_mapping({"initial_level": 20, "max_level": 40})
        """
        return (base or cls()).replace(**dict(mapping))


_FIELD_NAMES = frozenset(f.name for f in dataclasses.fields(StaircaseConfig))


# ----------------------------------------------------------------------
# Presets
# ----------------------------------------------------------------------

DEFAULT_STAIRCASE_CONFIG = StaircaseConfig()

# Levels in dB SPL.
HEARING_STAIRCASE_CONFIG = StaircaseConfig(
    initial_level=40.0,
    initial_step_size=8.0,
    step_sizes=(8.0, 4.0, 2.0),
    min_level=0.0,
    max_level=80.0,
    target_reversals=6,
    min_trials=6,
    max_trials=30,
)

# Level = strong/weak beat volume difference in dB.
BST_STAIRCASE_CONFIG = StaircaseConfig(
    initial_level=20.0,
    initial_step_size=8.0,
    step_sizes=(8.0, 4.0, 2.0),
    min_level=0.5,
    max_level=40.0,
    target_reversals=6,
    min_trials=6,
    max_trials=30,
)

# Level = IOI slope k in ms/beat.
BIT_STAIRCASE_CONFIG = StaircaseConfig(
    initial_level=5.0,
    initial_step_size=2.0,
    step_sizes=(2.0, 1.0, 0.5),
    min_level=0.1,
    max_level=20.0,
    target_reversals=6,
    min_trials=6,
    max_trials=30,
)

BFIT_STAIRCASE_CONFIG = StaircaseConfig(
    initial_level=8.0,
    initial_step_size=3.0,
    step_sizes=(3.0, 1.5, 0.75),
    min_level=0.5,
    max_level=30.0,
    target_reversals=6,
    min_trials=8,
    max_trials=35,
)

PRESETS: dict[str, StaircaseConfig] = {
    "default": DEFAULT_STAIRCASE_CONFIG,
    "hearing": HEARING_STAIRCASE_CONFIG,
    "bst": BST_STAIRCASE_CONFIG,
    "bit": BIT_STAIRCASE_CONFIG,
    "bfit": BFIT_STAIRCASE_CONFIG,
}


def preset(kind: str, **overrides: Any) -> StaircaseConfig:
    """Return the preset config for ``kind`` with optional overrides applied."""
    try:
        base = PRESETS[kind]
    except KeyError:
        raise ValueError(
            f"Unknown staircase kind {kind!r}; expected one of {sorted(PRESETS)}"
        ) from None
    return base.replace(**overrides) if overrides else base
