"""Pair notation mapping."""

from .normalizer import PairNormalizer

__all__ = ["PairNormalizer"]
