"""End-to-end tests for PCA computation and projection runs."""

import logging

import numpy as np
import pytest


def _exact(**kwargs):
    from vcf_pca.config import PCAConfig

    return PCAConfig(exact=True, **kwargs)


class TestSiteSelection:
    def test_empty(self):
        from vcf_pca.pipeline import SiteSelection

        assert SiteSelection.from_options().is_empty

    def test_regions_use_index(self):
        from vcf_pca.pipeline import SiteSelection

        selection = SiteSelection.from_options(regions="chr1")

        assert selection.use_index is True
        assert selection.regions.contains("chr1", 5)

    def test_targets_stream(self):
        from vcf_pca.pipeline import SiteSelection

        assert SiteSelection.from_options(targets="chr1").use_index is False

    def test_sites_vcf_file(self, population_vcf_file):
        from vcf_pca.pipeline import SiteSelection

        selection = SiteSelection.from_options(targets_file=population_vcf_file)

        assert selection.sites_file == population_vcf_file
        assert selection.use_index is False

    @pytest.mark.parametrize(
        "options",
        [
            {"regions": "chr1", "targets": "chr2"},
            {"targets": "chr1", "targets_file": "x.txt"},
        ],
    )
    def test_conflicting_options(self, options):
        from vcf_pca.errors import RegionSpecError
        from vcf_pca.pipeline import SiteSelection

        with pytest.raises(RegionSpecError, match="simultaneously"):
            SiteSelection.from_options(**options)


class TestSampleList:
    def test_comma_separated(self):
        from vcf_pca.pipeline import read_sample_list

        assert read_sample_list("S1, S3") == ["S1", "S3"]

    def test_file(self, tmp_path):
        from vcf_pca.pipeline import read_sample_list

        path = tmp_path / "samples.txt"
        path.write_text("S2\n\nS4 extra\n")

        assert read_sample_list(samples_file=path) == ["S2", "S4"]

    def test_none(self):
        from vcf_pca.pipeline import read_sample_list

        assert read_sample_list() is None


class TestComputePCA:
    """Test computation runs on the two-group population."""

    def test_leading_component_separates_groups(self, population_vcf_file, population_samples):
        from vcf_pca.pipeline import compute_pca

        result = compute_pca(population_vcf_file, _exact(npca=2))

        assert result.samples == population_samples
        assert result.scores.shape == (6, 2)
        pc1 = np.sign(result.scores[:, 0])
        assert len(set(pc1[:3])) == 1
        assert len(set(pc1[3:])) == 1
        assert pc1[0] != pc1[3]

    def test_randomized_matches_exact(self, population_vcf_file):
        from vcf_pca.config import PCAConfig
        from vcf_pca.pipeline import compute_pca

        exact = compute_pca(population_vcf_file, _exact(npca=3))
        approx = compute_pca(population_vcf_file, PCAConfig(npca=3, seed=3))

        np.testing.assert_allclose(approx.singular_values, exact.singular_values, rtol=1e-6)
        np.testing.assert_allclose(np.abs(approx.scores), np.abs(exact.scores), atol=1e-6)

    def test_component_count_clipped(self, population_vcf_file, caplog):
        from vcf_pca.pipeline import compute_pca

        with caplog.at_level(logging.WARNING):
            result = compute_pca(population_vcf_file, _exact(npca=20))

        assert result.n_components == 6
        assert "only 6 are available" in caplog.text

    def test_singular_values_file(self, population_vcf_file, tmp_path):
        from vcf_pca.pipeline import compute_pca

        svfile = tmp_path / "sv.txt"
        result = compute_pca(population_vcf_file, _exact(npca=3), svfile=svfile)

        values = [float(line) for line in svfile.read_text().splitlines()]
        np.testing.assert_allclose(values, result.singular_values, rtol=1e-9)

    def test_targets_restrict_sites(self, population_vcf_file):
        from vcf_pca.pipeline import SiteSelection, compute_pca

        result = compute_pca(
            population_vcf_file, _exact(npca=2), selection=SiteSelection.from_options(targets="chr1")
        )

        assert result.matrix.n_sites == 5

    def test_sites_vcf_intersection(self, population_vcf_file, tmp_path, vcf_generator,
                                    synthetic_variant_factory):
        from vcf_pca.pipeline import SiteSelection, compute_pca

        sites = vcf_generator.generate_file(
            tmp_path / "sites.vcf",
            [
                synthetic_variant_factory(pos=100),
                synthetic_variant_factory(pos=300),
                synthetic_variant_factory(chrom="chr2", pos=200),
                synthetic_variant_factory(chrom="chr3", pos=1),
            ],
        )

        result = compute_pca(
            population_vcf_file,
            _exact(npca=2),
            selection=SiteSelection.from_options(targets_file=sites),
        )

        assert [r.locus for r in result.matrix.records] == ["chr1:100", "chr1:300", "chr2:200"]

    def test_maf_and_thin(self, population_vcf_file):
        from vcf_pca.pipeline import compute_pca

        # minor allele count 5 of 12 fails at maf 0.42
        by_maf = compute_pca(population_vcf_file, _exact(npca=2, maf=0.42))
        thinned = compute_pca(population_vcf_file, _exact(npca=2, thin=2))

        assert by_maf.matrix.n_sites == 6
        assert [r.rs_id for r in thinned.matrix.records] == ["rs2", "rs4", "rs6", "rs8"]

    def test_sample_subset(self, population_vcf_file):
        from vcf_pca.pipeline import compute_pca

        result = compute_pca(population_vcf_file, _exact(npca=2), samples=["S1", "S4", "S5"])

        assert result.samples == ["S1", "S4", "S5"]
        assert result.scores.shape == (3, 2)

    def test_relationship_mode(self, population_vcf_file):
        from vcf_pca.pipeline import compute_pca

        result = compute_pca(population_vcf_file, _exact(npca=2, covdef=2))

        assert result.matrix.matrix.shape == (6, 6)
        assert result.scores.shape == (6, 2)

    def test_relationship_mode_cannot_export(self, population_vcf_file, tmp_path):
        from vcf_pca.config import ConfigValidationError
        from vcf_pca.pipeline import compute_pca

        out = tmp_path / "weights.vcf"
        with pytest.raises(ConfigValidationError, match="covdef 2"):
            compute_pca(population_vcf_file, _exact(covdef=2), loadings_out=out)
        assert not out.exists()

    def test_no_sites_selected(self, population_vcf_file):
        from vcf_pca.errors import NoIntersectingSitesError
        from vcf_pca.pipeline import SiteSelection, compute_pca

        with pytest.raises(NoIntersectingSitesError):
            compute_pca(
                population_vcf_file, _exact(), selection=SiteSelection.from_options(targets="chr3")
            )


class TestProjectPCA:
    """Test projection through an exported loading panel."""

    @pytest.mark.parametrize("covdef", [0, 1])
    def test_projection_reproduces_training_scores(self, population_vcf_file, tmp_path, covdef):
        from vcf_pca.pipeline import compute_pca, project_pca

        panel = tmp_path / "weights.vcf"
        computed = compute_pca(
            population_vcf_file, _exact(npca=3, covdef=covdef), loadings_out=panel
        )

        sample_ids, projected = project_pca(population_vcf_file, panel)

        assert sample_ids == computed.samples
        assert projected.n_components == 3
        assert projected.overlap_fraction == pytest.approx(1.0)
        np.testing.assert_allclose(projected.scores, computed.scores, rtol=1e-4, atol=1e-3)

    def test_max_components(self, population_vcf_file, tmp_path):
        from vcf_pca.pipeline import compute_pca, project_pca

        panel = tmp_path / "weights.vcf.gz"
        compute_pca(population_vcf_file, _exact(npca=3, output_type="z"), loadings_out=panel)

        _, projected = project_pca(population_vcf_file, panel, max_components=2)

        assert projected.scores.shape == (6, 2)

    def test_source_without_contig_lines(self, population_vcf_file, tmp_path):
        from fixtures.vcf_generator import make_loading_panel_file
        from vcf_pca.pipeline import project_pca

        genotypes = tmp_path / "no_contigs.vcf"
        genotypes.write_text("".join(
            line for line in population_vcf_file.read_text().splitlines(keepends=True)
            if not line.startswith("##contig")
        ))
        panel = make_loading_panel_file(
            tmp_path / "panel.vcf",
            [("chr2", 100, 0.5, [1.0]), ("chr2", 200, 0.5, [-1.0]), ("chr2", 300, 0.5, [0.5])],
        )
        # The panel declares only the contig it uses
        panel.write_text("".join(
            line for line in panel.read_text().splitlines(keepends=True)
            if not line.startswith(("##contig=<ID=chr1", "##contig=<ID=chr3"))
        ))

        _, projected = project_pca(genotypes, panel)
        _, expected = project_pca(population_vcf_file, panel)

        assert projected.overlap_sites == 3
        np.testing.assert_allclose(projected.scores, expected.scores)

    def test_sparse_panel_overlap(self, population_vcf_file, tmp_path):
        from fixtures.vcf_generator import make_loading_panel_file
        from vcf_pca.errors import InsufficientOverlapError
        from vcf_pca.pipeline import project_pca

        panel = make_loading_panel_file(
            tmp_path / "panel.vcf",
            [
                ("chr1", 100, 0.5, [1.0]),
                ("chr1", 150, 0.5, [1.0]),
                ("chr3", 10, 0.5, [1.0]),
            ],
        )

        with pytest.raises(InsufficientOverlapError):
            project_pca(population_vcf_file, panel)

        _, projected = project_pca(population_vcf_file, panel, _exact(assume_homref=True))
        assert projected.overlap_sites == 1
        assert projected.panel_sites == 3
