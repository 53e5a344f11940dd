"""Genotype matrix construction from a stream of variant records.

Supports:
- Minor allele frequency filtering on called genotypes
- Thinning: keep every k-th qualifying site (count first, then modulo)
- Imputation of missing dosages with the expected dosage 2p
- Standardized (N x M) or relationship (N x N) output matrices
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

import numpy as np

from ..errors import DosageRangeError, NoIntersectingSitesError, PloidyError
from ..models import HAPLOID, VariantRecord
from ..standardization import StandardizationPolicy

logger = logging.getLogger(__name__)


@dataclass
class BuildConfig:
    """Site filters and normalization for matrix construction."""

    maf: float = 0.0
    thin: int = 1
    policy: StandardizationPolicy = field(default_factory=StandardizationPolicy)

    def __post_init__(self) -> None:
        if self.thin < 1:
            raise ValueError(f"thin must be positive, got {self.thin}")
        if not 0.0 <= self.maf <= 0.5:
            raise ValueError(f"maf must be within [0, 0.5], got {self.maf}")


@dataclass
class BuildStats:
    """Counters collected while consuming the record stream."""

    sites_seen: int = 0
    sites_without_af: int = 0
    sites_qualifying: int = 0
    sites_retained: int = 0


@dataclass
class GenotypeMatrix:
    """Materialized matrix handed to the SVD engine."""

    matrix: np.ndarray
    af: np.ndarray
    records: list[VariantRecord]
    policy: StandardizationPolicy
    samples: list[str] = field(default_factory=list)

    @property
    def n_samples(self) -> int:
        return self.matrix.shape[0]

    @property
    def n_sites(self) -> int:
        return len(self.records)


def allele_counts(dosages: np.ndarray) -> tuple[int, int]:
    """Return (alternate allele count, allele number) over called genotypes.

    Missing and haploid entries are not counted.
    """
    called = dosages >= 0
    ac = int(dosages[called].sum())
    an = 2 * int(called.sum())
    return ac, an


def passes_maf(ac: int, an: int, maf: float) -> bool:
    """Check the minor allele count against the MAF threshold.

    A site qualifies when min(AC, AN - AC) > AN * maf, so monomorphic
    sites never qualify.
    """
    mac = min(ac, an - ac)
    return mac > an * maf


class GenotypeMatrixBuilder:
    """Accumulates retained sites and materializes the PCA input matrix."""

    def __init__(self, samples: list[str], config: BuildConfig | None = None):
        self.samples = samples
        self.config = config or BuildConfig()
        self.stats = BuildStats()
        self._columns: list[np.ndarray] = []
        self._af: list[float] = []
        self._records: list[VariantRecord] = []

    def add_record(self, record: VariantRecord) -> bool:
        """Consume one record; return True when it is retained."""
        self.stats.sites_seen += 1
        dosages = np.asarray(record.dosages)

        ac, an = allele_counts(dosages)
        if an == 0:
            self.stats.sites_without_af += 1
            logger.warning("No called genotypes at %s, site skipped", record.locus)
            return False

        if not passes_maf(ac, an, self.config.maf):
            return False

        self.stats.sites_qualifying += 1
        if self.stats.sites_qualifying % self.config.thin != 0:
            return False

        self._check_ploidy(record, dosages)

        frq = ac / an
        column = dosages.astype(np.float64)
        column[dosages < 0] = 2.0 * frq

        if np.any((column < 0.0) | (column > 2.0)):
            bad = int(np.flatnonzero((column < 0.0) | (column > 2.0))[0])
            raise DosageRangeError(
                f"Dosage {column[bad]:g} outside [0, 2] at {record.locus} "
                f"sample {self.samples[bad]}"
            )

        self._columns.append(column)
        self._af.append(float(column.mean()) / 2.0)
        self._records.append(replace(record, dosages=None))
        self.stats.sites_retained += 1
        return True

    def build(self) -> GenotypeMatrix:
        """Materialize the matrix from the retained sites.

        Raises:
            NoIntersectingSitesError: If no site was retained.
        """
        if not self._columns:
            raise NoIntersectingSitesError(
                "No intersecting SNPs found. Check chromosome prefix matches "
                "on sites and input file."
            )

        dosages = np.column_stack(self._columns)
        af = np.asarray(self._af, dtype=np.float64)
        policy = self.config.policy

        if policy.per_entry:
            matrix = policy.standardize(dosages, af[np.newaxis, :])
        else:
            matrix = policy.relationship_matrix(dosages, af)

        logger.debug(
            "Built %s x %s matrix (mode %d)", matrix.shape[0], matrix.shape[1], policy.mode
        )

        result = GenotypeMatrix(
            matrix=matrix, af=af, records=self._records, policy=policy, samples=list(self.samples)
        )
        self._columns = []
        return result

    def build_from(self, records: Iterable[VariantRecord]) -> GenotypeMatrix:
        """Consume a whole record stream and materialize the matrix."""
        for record in records:
            self.add_record(record)
        return self.build()

    def _check_ploidy(self, record: VariantRecord, dosages: np.ndarray) -> None:
        haploid = np.flatnonzero(dosages == HAPLOID)
        if haploid.size:
            raise PloidyError(record.locus, self.samples[int(haploid[0])])
