"""Projection of samples onto a fixed panel of per-site PCA loadings.

No decomposition is computed: every panel site contributes
``loading * standardized_dosage`` to each sample's scores.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .errors import (
    DosageRangeError,
    InsufficientOverlapError,
    LoadingLengthError,
    MissingAnnotationError,
    NoIntersectingSitesError,
    NonFiniteScoreError,
    PCAError,
    PloidyError,
)
from .models import HAPLOID, MISSING, MergedSite, VariantRecord
from .standardization import StandardizationPolicy

logger = logging.getLogger(__name__)

GENOTYPE_SOURCE = 0
PANEL_SOURCE = 1

MIN_OVERLAP_FRACTION = 0.9


class MissingGenotypePolicy(str, Enum):
    """How a dosage is derived for a missing genotype or an absent site."""

    EXPECTED_FREQUENCY = "expected-frequency"
    HOMOZYGOUS_REFERENCE = "homozygous-reference"

    def impute(self, af: float) -> float:
        if self is MissingGenotypePolicy.HOMOZYGOUS_REFERENCE:
            return 0.0
        return 2.0 * af


@dataclass
class ProjectionResult:
    """Scores and overlap accounting of a projection run."""

    scores: np.ndarray
    n_components: int
    overlap_sites: int
    panel_sites: int

    @property
    def overlap_fraction(self) -> float:
        if self.panel_sites == 0:
            return 0.0
        return self.overlap_sites / self.panel_sites


class Projector:
    """Accumulates per-sample scores over an aligned genotype/panel stream."""

    def __init__(
        self,
        samples: list[str],
        policy: StandardizationPolicy | None = None,
        missing: MissingGenotypePolicy = MissingGenotypePolicy.EXPECTED_FREQUENCY,
        max_components: int | None = None,
    ):
        self.samples = samples
        self.policy = policy or StandardizationPolicy()
        if not self.policy.per_entry:
            raise ValueError("projection requires a per-entry normalization mode")
        self.missing = missing
        self.max_components = max_components
        self.n_components = 0
        self.overlap_sites = 0
        self.panel_sites = 0
        self._scores: np.ndarray | None = None

    def add_site(self, site: MergedSite) -> None:
        """Accumulate one coordinate of the aligned stream."""
        panel = site.get(PANEL_SOURCE)
        if panel is None:
            return

        self.panel_sites += 1
        genotypes = site.get(GENOTYPE_SOURCE)
        if genotypes is not None:
            self.overlap_sites += 1

        af = self._site_af(panel)
        if af is None:
            return

        dosages = self._site_dosages(site, genotypes, af)
        loadings = self._site_loadings(panel)
        if np.isnan(loadings[0]):
            return

        if self.n_components == 0:
            self._fix_components(loadings)
        elif loadings.shape[0] < self.n_components:
            raise LoadingLengthError(
                f"{panel.locus}: {loadings.shape[0]} loadings, "
                f"expected {self.n_components}"
            )

        standardized = self.policy.standardize(dosages, af)
        self._scores += np.outer(standardized, loadings[: self.n_components])

        if np.isnan(self._scores).any():
            raise NonFiniteScoreError(f"NaN score at {panel.locus} (AF={af:g})")

    def project(self, sites: Iterable[MergedSite]) -> ProjectionResult:
        """Consume a whole aligned stream and return the scores."""
        for site in sites:
            self.add_site(site)
        return self.finish()

    def finish(self) -> ProjectionResult:
        """Validate overlap accounting and return the accumulated scores.

        Raises:
            InsufficientOverlapError: If fewer than 90% of panel sites were in
                the genotype source and missing sites are not assumed
                homozygous reference.
            NoIntersectingSitesError: If no panel site was in the source.
        """
        logger.info("%d/%d of panel sites were in the genotype source",
                    self.overlap_sites, self.panel_sites)

        homref = self.missing is MissingGenotypePolicy.HOMOZYGOUS_REFERENCE
        if (
            not homref
            and self.panel_sites > 0
            and self.overlap_sites / self.panel_sites < MIN_OVERLAP_FRACTION
        ):
            raise InsufficientOverlapError(
                f"Only {self.overlap_sites}/{self.panel_sites} panel sites were found "
                "in the genotype source. Check chromosome naming and genome build, "
                "or use --assume-homref for a small number of samples."
            )

        if self.overlap_sites == 0:
            raise NoIntersectingSitesError(
                "No intersecting SNPs found. Check chromosome prefix matches "
                "on sites and input file."
            )

        if self._scores is None:
            raise PCAError("No principal components found in loading panel")

        return ProjectionResult(
            scores=self._scores,
            n_components=self.n_components,
            overlap_sites=self.overlap_sites,
            panel_sites=self.panel_sites,
        )

    def _site_af(self, panel: VariantRecord) -> float | None:
        if panel.af is None:
            raise MissingAnnotationError(f"No INFO/AF field in loading panel at {panel.locus}")

        values = np.atleast_1d(np.asarray(panel.af, dtype=np.float64))
        if values.shape[0] != 1:
            logger.warning("Multiple AF values at %s, site skipped", panel.locus)
            return None
        return float(values[0])

    def _site_loadings(self, panel: VariantRecord) -> np.ndarray:
        if panel.loadings is None:
            raise MissingAnnotationError(f"No INFO/WEIGHT field in loading panel at {panel.locus}")

        loadings = np.atleast_1d(np.asarray(panel.loadings, dtype=np.float64))
        if loadings.shape[0] == 0:
            raise MissingAnnotationError(f"Empty INFO/WEIGHT field at {panel.locus}")
        return loadings

    def _site_dosages(
        self, site: MergedSite, genotypes: VariantRecord | None, af: float
    ) -> np.ndarray:
        fill = self.missing.impute(af)
        if genotypes is None:
            return np.full(len(self.samples), fill)

        raw = np.asarray(genotypes.dosages)
        haploid = np.flatnonzero(raw == HAPLOID)
        if haploid.size:
            raise PloidyError(site.locus, self.samples[int(haploid[0])])

        dosages = raw.astype(np.float64)
        dosages[raw == MISSING] = fill

        bad = np.flatnonzero(~((dosages >= 0.0) & (dosages <= 2.0)))
        if bad.size:
            n = int(bad[0])
            raise DosageRangeError(
                f"Error at {site.locus} sample {self.samples[n]}: "
                f"g = {dosages[n]:g} af={af:g}"
            )
        return dosages

    def _fix_components(self, loadings: np.ndarray) -> None:
        n_components = loadings.shape[0]
        if self.max_components is not None and self.max_components > 0:
            n_components = min(self.max_components, n_components)

        logger.info("Using %d PCs from loading panel", n_components)
        self.n_components = n_components
        self._scores = np.zeros((len(self.samples), n_components))
