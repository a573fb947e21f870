"""
Simulated staircase example: recover a known threshold and plot the track
---------------------------------------------------------------------------

This script runs the hearing and BST staircases against a simulated
observer whose psychometric function is known:

    p_correct(level) = guess + (1 - guess - lapse) * sigmoid(slope * (level - threshold))

Responses are Bernoulli draws from JAX PRNG keys, so each run is
reproducible from its seed.

For each run the script
1. drives the controller until it terminates,
2. prints the threshold estimate, the reversal summary and the grade,
3. plots the level track with reversals marked against the true threshold.

Install the package with the docs extra first (``pip install -e .[docs]``).
"""

from __future__ import annotations

import os

import matplotlib.pyplot as plt
import numpy as np

# --8<-- [start:imports]
from rhythmstair import LogisticObserver, create_staircase_controller, evaluate_quality, simulate_staircase
from rhythmstair.staircase import summarize_reversals
from rhythmstair.staircase.trial import trials_to_numpy
from rhythmstair.utils.rng import seed

# --8<-- [end:imports]

PLOTS_DIR = os.path.join(os.path.dirname(__file__), "plots")
os.makedirs(PLOTS_DIR, exist_ok=True)

# --8<-- [start:runs]
RUNS = {
    # kind: (true threshold, slope, guess rate)
    "hearing": (22.0, 0.6, 0.0),
    "bst": (6.0, 0.8, 0.5),
}
# --8<-- [end:runs]

fig, axes = plt.subplots(1, len(RUNS), figsize=(11, 4), sharey=False)

for ax, (kind, (true_threshold, slope, guess)) in zip(axes, RUNS.items()):
    observer = LogisticObserver(
        threshold=true_threshold, slope=slope, guess_rate=guess, lapse_rate=0.02
    )
    controller = create_staircase_controller(kind)
    result = simulate_staircase(controller, observer, seed(0))

    summary = summarize_reversals(result.reversal_points or [result.threshold])
    quality = evaluate_quality(result)
    print(
        f"[{kind}] threshold={result.threshold:.2f} (true {true_threshold:.2f}) "
        f"trials={result.total_trials} reversals={result.total_reversals} "
        f"CI95=({summary.confidence_interval[0]:.2f}, {summary.confidence_interval[1]:.2f}) "
        f"grade={quality.grade} score={quality.score}"
    )

    levels, responses, reversals = trials_to_numpy(result.trials)
    idx = np.arange(1, levels.size + 1)
    ax.plot(idx, levels, color="0.6", lw=1, zorder=1)
    ax.scatter(idx[responses], levels[responses], marker="o", color="tab:green", label="correct", zorder=2)
    ax.scatter(idx[~responses], levels[~responses], marker="x", color="tab:red", label="incorrect", zorder=2)
    ax.scatter(
        idx[reversals], levels[reversals], s=120, facecolors="none", edgecolors="k", label="reversal", zorder=3
    )
    ax.axhline(true_threshold, color="tab:blue", ls="--", label="true threshold")
    ax.axhline(result.threshold, color="tab:orange", ls=":", label="estimate")
    ax.set_title(f"{kind} staircase")
    ax.set_xlabel("trial")
    ax.set_ylabel("level")

axes[0].legend(loc="upper right", fontsize=8)
plt.tight_layout()

out_path = os.path.join(PLOTS_DIR, "simulated_staircase_tracks.png")
fig.savefig(out_path, dpi=200, bbox_inches="tight")
print(f"Saved plot to {out_path}")
plt.show()
