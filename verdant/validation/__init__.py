"""Validation boundary for untrusted scanner output."""

from verdant.validation.validator import ScanResultValidator

__all__ = ["ScanResultValidator"]
