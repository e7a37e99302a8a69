"""Dead code analysis: running the external tool and parsing its report."""

from __future__ import annotations

from deadscan.analysis.report_parser import ALLOWED_KINDS, parse_unused_report
from deadscan.analysis.understand import UnderstandAnalyzer

__all__ = ["ALLOWED_KINDS", "UnderstandAnalyzer", "parse_unused_report"]
