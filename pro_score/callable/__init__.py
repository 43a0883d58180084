"""Callable protocol for pro-score."""

from pro_score.callable.execute import execute
from pro_score.callable.result import CallableResult

__all__ = ["CallableResult", "execute"]
