"""Pytest configuration and fixtures for vcf-pca tests."""

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent))

from fixtures.vcf_generator import (  # noqa: E402
    POPULATION_SAMPLES,
    SyntheticVariant,
    VCFGenerator,
    make_population_vcf_file,
)


@pytest.fixture
def vcf_generator():
    """Provide VCFGenerator class for tests."""
    return VCFGenerator


@pytest.fixture
def synthetic_variant_factory():
    """Factory for creating SyntheticVariant instances."""

    def _factory(**kwargs):
        defaults = {
            "chrom": "chr1",
            "pos": 100,
            "ref": "A",
            "alt": ["G"],
        }
        defaults.update(kwargs)
        return SyntheticVariant(**defaults)

    return _factory


@pytest.fixture
def population_vcf_file(tmp_path) -> Path:
    """Six samples in two differentiated groups, eight sites on two contigs."""
    return make_population_vcf_file(tmp_path / "population.vcf")


@pytest.fixture
def population_samples() -> list[str]:
    return list(POPULATION_SAMPLES)


@pytest.fixture
def rng():
    return np.random.default_rng(20150501)
