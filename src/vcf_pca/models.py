"""Data models for sites, samples and merged multi-source records."""

from dataclasses import dataclass, field

import numpy as np

MISSING = -1
HAPLOID = -2


@dataclass
class VariantRecord:
    """Represents a single site read from a genotype source or a loading panel."""

    chrom: str
    pos: int
    ref: str = "N"
    alt: str = "."
    rs_id: str | None = None

    # Diploid allele dosages, one per sample; MISSING / HAPLOID sentinels
    dosages: np.ndarray | None = None

    # Loading-panel annotations
    af: float | tuple[float, ...] | None = None
    loadings: np.ndarray | None = None

    @property
    def locus(self) -> str:
        return f"{self.chrom}:{self.pos}"

    @property
    def allele_key(self) -> tuple[str, str]:
        return (self.ref, self.alt)


@dataclass
class MergedSite:
    """A coordinate of the aligned stream with one slot per source."""

    chrom: str
    pos: int
    records: tuple[VariantRecord | None, ...] = field(default_factory=tuple)

    def has(self, source: int) -> bool:
        return self.records[source] is not None

    def get(self, source: int) -> VariantRecord | None:
        return self.records[source]

    @property
    def locus(self) -> str:
        return f"{self.chrom}:{self.pos}"
