"""Shared helpers for the ranking stages."""

from .scores import lookup_signal, mean, safe_number, safe_unit, weighted_sum

__all__ = ["lookup_signal", "mean", "safe_number", "safe_unit", "weighted_sum"]
