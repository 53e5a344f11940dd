"""Singular value decomposition strategies."""

from .svd import ExactSVD, RandomizedSVD, SVDResult, make_svd_engine

__all__ = [
    "ExactSVD",
    "RandomizedSVD",
    "SVDResult",
    "make_svd_engine",
]
