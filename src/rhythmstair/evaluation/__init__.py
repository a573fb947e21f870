"""
evaluation
==========

Quality grading of finished tests.
"""

from .quality import (
    BFIT_QUALITY,
    BIT_QUALITY,
    BST_QUALITY,
    HEARING_QUALITY,
    QualityEvaluation,
    QualityScheme,
    evaluate_quality,
    scheme_for,
)

__all__ = [
    "QualityScheme",
    "QualityEvaluation",
    "HEARING_QUALITY",
    "BST_QUALITY",
    "BIT_QUALITY",
    "BFIT_QUALITY",
    "evaluate_quality",
    "scheme_for",
]
