"""Genotype matrix construction module."""

from .matrix_builder import (
    BuildConfig,
    BuildStats,
    GenotypeMatrix,
    GenotypeMatrixBuilder,
    allele_counts,
    passes_maf,
)

__all__ = [
    "BuildConfig",
    "BuildStats",
    "GenotypeMatrix",
    "GenotypeMatrixBuilder",
    "allele_counts",
    "passes_maf",
]
