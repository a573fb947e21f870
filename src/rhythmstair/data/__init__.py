"""
data
====

Export records for finished tests.
"""

from .export import (
    ExportPayload,
    format_bfit_result_for_export,
    format_bit_result_for_export,
    format_bst_result_for_export,
    format_hearing_result_for_export,
    format_hearing_session_for_export,
    format_result_for_export,
    format_staircase_result_for_export,
)

__all__ = [
    "ExportPayload",
    "format_result_for_export",
    "format_staircase_result_for_export",
    "format_hearing_result_for_export",
    "format_hearing_session_for_export",
    "format_bst_result_for_export",
    "format_bit_result_for_export",
    "format_bfit_result_for_export",
]
