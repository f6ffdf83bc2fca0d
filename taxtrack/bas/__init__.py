"""BAS reporting package."""

from taxtrack.bas.calculator import BasCalculator, BasSummary, parse_basis

__all__ = ["BasCalculator", "BasSummary", "parse_basis"]
