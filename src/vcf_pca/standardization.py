"""Genotype standardization shared by matrix construction and projection.

Supports three normalization modes:
- 0: centered dosages, g - 2p
- 1: standardized dosages, (g - 2p) / sqrt(2p(1 - p))
- 2: bias-corrected genetic relationship matrix

Reference for the relationship-matrix diagonal correction:
Speed D, Balding DJ. Relatedness in the post-genomic era: is it still useful?
Nat Rev Genet. 2015 Jan;16(1):33-44. PMID: 26482676.
"""

from dataclasses import dataclass
from enum import IntEnum

import numpy as np


class NormalizationMode(IntEnum):
    """Definition of the matrix handed to the SVD."""

    CENTERED = 0
    STANDARDIZED = 1
    RELATIONSHIP = 2


def expected_heterozygosity(p):
    """Return 2p(1 - p) for a scalar or array of allele frequencies."""
    return 2.0 * p * (1.0 - p)


@dataclass(frozen=True)
class StandardizationPolicy:
    """Transform from raw dosage and allele frequency to the value used downstream.

    A single instance is created per run and handed to both the matrix
    builder and the projector, so the two paths cannot disagree.
    """

    mode: NormalizationMode = NormalizationMode.STANDARDIZED

    @classmethod
    def from_mode(cls, mode: int | NormalizationMode) -> "StandardizationPolicy":
        try:
            return cls(NormalizationMode(int(mode)))
        except ValueError:
            raise ValueError(f"normalization mode must be 0, 1 or 2, got {mode}") from None

    @property
    def per_entry(self) -> bool:
        """True when the policy transforms each dosage independently."""
        return self.mode != NormalizationMode.RELATIONSHIP

    def standardize(self, g, p):
        """Normalize dosage(s) ``g`` at allele frequency ``p``.

        Args:
            g: Dosage or array of dosages in [0, 2]
            p: Alternate allele frequency (scalar, or broadcastable array)

        Returns:
            Normalized value(s). A frequency of 0 or 1 yields non-finite
            values in mode 1; callers validate their results.
        """
        if not self.per_entry:
            raise ValueError("relationship mode has no per-entry transform")

        centered = np.asarray(g, dtype=np.float64) - 2.0 * np.asarray(p, dtype=np.float64)
        if self.mode == NormalizationMode.CENTERED:
            return centered

        with np.errstate(divide="ignore", invalid="ignore"):
            return centered / np.sqrt(expected_heterozygosity(np.asarray(p, dtype=np.float64)))

    def relationship_matrix(self, dosages: np.ndarray, af: np.ndarray) -> np.ndarray:
        """Build the N x N bias-corrected relationship matrix.

        Args:
            dosages: N x M matrix of imputed dosages
            af: Length-M allele frequencies of the columns

        Returns:
            Symmetric N x N matrix normalized by mean(2p(1-p)) / 4
        """
        if self.per_entry:
            raise ValueError(f"mode {int(self.mode)} does not build a relationship matrix")

        g = np.asarray(dosages, dtype=np.float64)
        p = np.asarray(af, dtype=np.float64)

        centered = g - 2.0 * p[np.newaxis, :]
        grm = centered @ centered.T
        grm[np.diag_indices_from(grm)] -= (g * (2.0 - g)).sum(axis=1)

        norm = expected_heterozygosity(p).mean() / 4.0
        return grm / norm
