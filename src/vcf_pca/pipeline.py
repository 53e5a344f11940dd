"""Orchestration of PCA computation and projection runs."""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .config import ConfigValidationError, PCAConfig
from .decomposition import SVDResult, make_svd_engine
from .errors import RegionSpecError
from .export import write_loading_panel, write_singular_values
from .genotypes import BuildConfig, GenotypeMatrix, GenotypeMatrixBuilder
from .models import MergedSite, VariantRecord
from .projection import MissingGenotypePolicy, ProjectionResult, Projector
from .regions import RegionSet, is_vcf_path
from .standardization import NormalizationMode, StandardizationPolicy
from .sync_reader import ContigOrder, merge_sorted
from .vcf_parser import GenotypeReader, LoadingPanelReader, SiteListReader

logger = logging.getLogger(__name__)


@dataclass
class SiteSelection:
    """Site filters of a computation run.

    ``use_index`` selects region semantics (index jumps) over target
    semantics (streaming filter). A sites VCF given as a regions or targets
    file also restricts the run to the sites it lists.
    """

    regions: RegionSet | None = None
    use_index: bool = False
    sites_file: Path | None = None

    @property
    def is_empty(self) -> bool:
        return self.regions is None

    @classmethod
    def from_options(
        cls,
        regions: str | None = None,
        regions_file: Path | None = None,
        targets: str | None = None,
        targets_file: Path | None = None,
    ) -> "SiteSelection":
        """Build a selection from the four mutually exclusive options.

        Raises:
            RegionSpecError: If options conflict or a region is malformed.
        """
        if regions and regions_file:
            raise RegionSpecError("-r and -R cannot be used simultaneously")
        if targets and targets_file:
            raise RegionSpecError("-t and -T cannot be used simultaneously")
        if (targets or targets_file) and (regions or regions_file):
            raise RegionSpecError("-t/-T and -r/-R cannot be used simultaneously")

        if regions:
            return cls(RegionSet.from_string(regions), use_index=True)
        if targets:
            return cls(RegionSet.from_string(targets), use_index=False)

        path = regions_file or targets_file
        if path is None:
            return cls()
        sites_file = path if is_vcf_path(path) else None
        return cls(RegionSet.from_file(path), use_index=regions_file is not None, sites_file=sites_file)


@dataclass
class PCAResult:
    """Outcome of a computation run."""

    samples: list[str]
    svd: SVDResult
    matrix: GenotypeMatrix

    @property
    def scores(self) -> np.ndarray:
        return self.svd.scores

    @property
    def singular_values(self) -> np.ndarray:
        return self.svd.s

    @property
    def n_components(self) -> int:
        return self.svd.rank


def read_sample_list(samples: str | None = None, samples_file: Path | None = None) -> list[str] | None:
    """Resolve a comma-separated sample list or a one-per-line sample file."""
    if samples and samples_file:
        raise ConfigValidationError("-s and -S cannot be used simultaneously")
    if samples:
        return [s.strip() for s in samples.split(",") if s.strip()]
    if samples_file:
        if not samples_file.exists():
            raise ConfigValidationError(f"Samples file not found: {samples_file}")
        with open(samples_file) as f:
            return [line.split()[0] for line in f if line.strip()]
    return None


class _SitesIntersection:
    """Genotype records present in both the source and a sites panel."""

    def __init__(self, merged: Iterable[MergedSite]):
        self._merged = merged
        self.panel_sites = 0

    def __iter__(self) -> Iterator[VariantRecord]:
        for site in self._merged:
            if site.has(1):
                self.panel_sites += 1
                if site.has(0):
                    yield site.get(0)


def clip_components(requested: int, shape: tuple[int, int]) -> int:
    """Limit the component count to min(N, M)."""
    available = min(shape)
    if requested > available:
        logger.warning(
            "Requested %d components but only %d are available; using %d",
            requested, available, available,
        )
        return available
    return requested


def build_matrix(
    input_path: Path,
    config: PCAConfig,
    selection: SiteSelection | None = None,
    samples: list[str] | None = None,
) -> GenotypeMatrix:
    """Read the genotype source and materialize the PCA input matrix."""
    selection = selection or SiteSelection()
    policy = StandardizationPolicy.from_mode(config.covdef)
    build_config = BuildConfig(maf=config.maf, thin=config.thin, policy=policy)

    with GenotypeReader(
        input_path, samples=samples, regions=selection.regions, use_index=selection.use_index
    ) as reader:
        builder = GenotypeMatrixBuilder(reader.samples, build_config)

        if selection.sites_file is None:
            matrix = builder.build_from(reader)
            logger.info(
                "Kept %d markers out of %d", builder.stats.sites_retained, builder.stats.sites_seen
            )
            return matrix

        sites = SiteListReader(selection.sites_file)
        try:
            order = ContigOrder(reader.contigs, sites.contigs)
            intersection = _SitesIntersection(merge_sorted(reader, sites, order=order))
            matrix = builder.build_from(intersection)
        finally:
            sites.close()

        logger.info(
            "%d/%d of study markers were in the sites file",
            builder.stats.sites_retained, intersection.panel_sites,
        )
        return matrix


def compute_pca(
    input_path: Path,
    config: PCAConfig | None = None,
    selection: SiteSelection | None = None,
    samples: list[str] | None = None,
    svfile: Path | None = None,
    loadings_out: Path | None = None,
) -> PCAResult:
    """Compute principal components of a genotype source.

    Args:
        input_path: VCF/BCF genotype source
        config: Run parameters
        selection: Region/target filters
        samples: Optional sample subset
        svfile: Optional destination for the singular values
        loadings_out: Optional destination for the loading panel

    Returns:
        PCAResult holding scores, singular values and loadings
    """
    config = config or PCAConfig()
    if loadings_out is not None and config.covdef == NormalizationMode.RELATIONSHIP:
        raise ConfigValidationError(
            "Loadings cannot be exported for covdef 2: singular vectors are per sample"
        )

    logger.info(
        "MAF lower bound: %g, thin: %d, number of principal components: %d",
        config.maf, config.thin, config.npca,
    )
    matrix = build_matrix(input_path, config, selection, samples)

    k = clip_components(config.npca, matrix.matrix.shape)
    engine = make_svd_engine(
        exact=config.exact, extra=config.extra, iterations=config.iterations, seed=config.seed
    )
    logger.info("Running %s SVD on a %d x %d matrix", engine.name, *matrix.matrix.shape)
    svd = engine.decompose(matrix.matrix, k)

    if svfile is not None:
        write_singular_values(svfile, svd.s)

    if loadings_out is not None:
        write_loading_panel(
            loadings_out, matrix.records, matrix.af, svd.v, matrix.policy.mode, config.output_type
        )

    return PCAResult(samples=matrix.samples, svd=svd, matrix=matrix)


def project_pca(
    input_path: Path,
    panel_path: Path,
    config: PCAConfig | None = None,
    samples: list[str] | None = None,
    max_components: int | None = None,
) -> tuple[list[str], ProjectionResult]:
    """Project the samples of a genotype source onto a loading panel.

    Args:
        input_path: VCF/BCF genotype source
        panel_path: Loading panel with INFO/AF and INFO/WEIGHT
        config: Run parameters (only ``assume_homref`` is used)
        samples: Optional sample subset
        max_components: Optional cap on the number of components

    Returns:
        Tuple of (sample ids, ProjectionResult)
    """
    config = config or PCAConfig()
    missing = (
        MissingGenotypePolicy.HOMOZYGOUS_REFERENCE
        if config.assume_homref
        else MissingGenotypePolicy.EXPECTED_FREQUENCY
    )

    with LoadingPanelReader(panel_path) as panel, GenotypeReader(input_path, samples=samples) as reader:
        logger.info("Using file %s for PCA weights", panel_path)
        policy = StandardizationPolicy(panel.normalization)
        projector = Projector(reader.samples, policy, missing, max_components)
        order = ContigOrder(reader.contigs, panel.contigs)
        result = projector.project(merge_sorted(reader, panel, order=order))
        return list(reader.samples), result
