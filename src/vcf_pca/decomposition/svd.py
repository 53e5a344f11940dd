"""Truncated singular value decomposition strategies.

Both strategies return the leading ``k`` singular triplets of a dense
matrix in decreasing order of singular value. The sign of each pair of
singular vectors is arbitrary: it can differ between the two strategies
and, for the randomized strategy without a fixed seed, between runs.

Reference for the randomized algorithm:
Halko N, Martinsson PG, Tropp JA. Finding structure with randomness:
probabilistic algorithms for constructing approximate matrix
decompositions. SIAM Rev. 2011;53(2):217-288. DOI: 10.1137/090771806
"""

import logging
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_EXTRA_VECTORS = 100
DEFAULT_POWER_ITERATIONS = 10


@dataclass
class SVDResult:
    """Leading singular triplets: A ~= u @ diag(s) @ v.T."""

    u: np.ndarray
    s: np.ndarray
    v: np.ndarray

    @property
    def rank(self) -> int:
        return int(self.s.shape[0])

    @property
    def scores(self) -> np.ndarray:
        """Principal component coordinates of the rows, u * s."""
        return self.u * self.s[np.newaxis, :]

    def reconstruct(self) -> np.ndarray:
        return self.scores @ self.v.T


def _check_rank(a: np.ndarray, k: int) -> None:
    if a.ndim != 2:
        raise ValueError("SVD expects a 2D matrix")
    if k < 1 or k > min(a.shape):
        raise ValueError(f"rank must be in [1, {min(a.shape)}], got {k}")


class ExactSVD:
    """Thin SVD of the full matrix, truncated to the requested rank."""

    name = "exact"

    def decompose(self, a: np.ndarray, k: int) -> SVDResult:
        _check_rank(a, k)
        u, s, vt = np.linalg.svd(a, full_matrices=False)
        return SVDResult(u=u[:, :k], s=s[:k], v=vt[:k, :].T)


class RandomizedSVD:
    """Randomized SVD with oversampling and power iterations.

    Args:
        extra: Oversampling vectors added to the sketch. Clipped so that
            k + extra never exceeds min(N, M).
        iterations: Power iterations; each one applies A.T then A, with
            re-orthonormalization after every product.
        seed: Seed for the Gaussian test matrix. None draws fresh entropy.
    """

    name = "randomized"

    def __init__(
        self,
        extra: int = DEFAULT_EXTRA_VECTORS,
        iterations: int = DEFAULT_POWER_ITERATIONS,
        seed: int | None = None,
    ):
        if extra < 0:
            raise ValueError(f"extra vectors must be non-negative, got {extra}")
        if iterations < 0:
            raise ValueError(f"power iterations must be non-negative, got {iterations}")
        self.extra = extra
        self.iterations = iterations
        self.seed = seed

    def sketch_rank(self, a: np.ndarray, k: int) -> int:
        """Size of the random subspace, k plus clipped oversampling."""
        return k + min(min(a.shape) - k, self.extra)

    def decompose(self, a: np.ndarray, k: int) -> SVDResult:
        _check_rank(a, k)
        rank = self.sketch_rank(a, k)
        rng = np.random.default_rng(self.seed)

        omega = rng.standard_normal(size=(a.shape[1], rank))
        q, _ = np.linalg.qr(a @ omega)

        for _ in range(self.iterations):
            z, _ = np.linalg.qr(a.T @ q)
            q, _ = np.linalg.qr(a @ z)

        b = q.T @ a
        u_small, s, vt = np.linalg.svd(b, full_matrices=False)
        u = q @ u_small

        logger.debug("Randomized SVD: sketch rank %d, %d power iterations", rank, self.iterations)
        return SVDResult(u=u[:, :k], s=s[:k], v=vt[:k, :].T)


def make_svd_engine(
    exact: bool = False,
    extra: int = DEFAULT_EXTRA_VECTORS,
    iterations: int = DEFAULT_POWER_ITERATIONS,
    seed: int | None = None,
) -> ExactSVD | RandomizedSVD:
    """Select the decomposition strategy."""
    if exact:
        return ExactSVD()
    return RandomizedSVD(extra=extra, iterations=iterations, seed=seed)
