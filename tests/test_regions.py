"""Tests for region and target parsing."""

import gzip

import pytest


class TestParseRegion:
    """Test bcftools-style region items."""

    def test_whole_contig(self):
        from vcf_pca.regions import MAX_POSITION, parse_region

        region = parse_region("chr1")

        assert (region.chrom, region.start, region.end) == ("chr1", 1, MAX_POSITION)
        assert region.query_string() == "chr1"

    def test_interval(self):
        from vcf_pca.regions import parse_region

        region = parse_region("chr2:100-200")

        assert (region.chrom, region.start, region.end) == ("chr2", 100, 200)
        assert region.query_string() == "chr2:100-200"

    def test_single_position(self):
        from vcf_pca.regions import parse_region

        region = parse_region("chr1:150")

        assert (region.start, region.end) == (150, 150)

    def test_open_ended(self):
        from vcf_pca.regions import MAX_POSITION, parse_region

        region = parse_region("chr1:150-")

        assert (region.start, region.end) == (150, MAX_POSITION)

    @pytest.mark.parametrize("item", ["", "chr1:abc", "chr1:200-100", "chr1:0-5", ":5"])
    def test_malformed(self, item):
        from vcf_pca.errors import RegionSpecError
        from vcf_pca.regions import parse_region

        with pytest.raises(RegionSpecError, match="Malformed region"):
            parse_region(item)


class TestRegionSet:
    def test_from_string(self):
        from vcf_pca.regions import RegionSet

        regions = RegionSet.from_string("chr1:100-200,chr2")

        assert regions.contains("chr1", 100)
        assert regions.contains("chr1", 200)
        assert not regions.contains("chr1", 201)
        assert regions.contains("chr2", 123456)
        assert not regions.contains("chr3", 1)

    def test_empty_string(self):
        from vcf_pca.errors import RegionSpecError
        from vcf_pca.regions import RegionSet

        with pytest.raises(RegionSpecError):
            RegionSet.from_string(",")

    def test_overlapping_intervals_merged(self):
        from vcf_pca.regions import Region, RegionSet

        regions = RegionSet([
            Region("chr1", 100, 200),
            Region("chr1", 150, 300),
            Region("chr1", 301, 310),
            Region("chr1", 500, 600),
        ])

        assert len(regions) == 2
        assert [(r.start, r.end) for r in regions.regions()] == [(100, 310), (500, 600)]
        assert not regions.contains("chr1", 400)

    def test_regions_follow_contig_order(self):
        from vcf_pca.regions import RegionSet

        regions = RegionSet.from_string("chr2:1-10,chr1:5-6")

        assert [r.chrom for r in regions.regions()] == ["chr2", "chr1"]
        assert [r.chrom for r in regions.regions(["chr1", "chr2"])] == ["chr1", "chr2"]


class TestRegionFiles:
    def test_two_column_file(self, tmp_path):
        from vcf_pca.regions import RegionSet

        path = tmp_path / "sites.txt"
        path.write_text("#CHROM\tPOS\nchr1\t100\nchr1\t300\n")

        regions = RegionSet.from_file(path)

        assert regions.contains("chr1", 100)
        assert not regions.contains("chr1", 200)
        assert regions.contains("chr1", 300)

    def test_three_column_file(self, tmp_path):
        from vcf_pca.regions import RegionSet

        path = tmp_path / "regions.tsv"
        path.write_text("chr1\t100\t200\n\nchr2\t5\t5\n")

        regions = RegionSet.from_file(path)

        assert regions.contains("chr1", 100)
        assert regions.contains("chr1", 200)
        assert regions.contains("chr2", 5)
        assert not regions.contains("chr2", 6)

    def test_bed_is_zero_based(self, tmp_path):
        from vcf_pca.regions import RegionSet

        path = tmp_path / "regions.bed"
        path.write_text("track name=test\nchr1\t99\t200\n")

        regions = RegionSet.from_file(path)

        assert not regions.contains("chr1", 99)
        assert regions.contains("chr1", 100)
        assert regions.contains("chr1", 200)

    def test_gzipped_file(self, tmp_path):
        from vcf_pca.regions import RegionSet

        path = tmp_path / "regions.tsv.gz"
        with gzip.open(path, "wt") as f:
            f.write("chr3\t10\t20\n")

        assert RegionSet.from_file(path).contains("chr3", 15)

    def test_sites_vcf(self, tmp_path, vcf_generator, synthetic_variant_factory):
        from vcf_pca.regions import RegionSet

        path = vcf_generator.generate_file(
            tmp_path / "sites.vcf",
            [synthetic_variant_factory(pos=100), synthetic_variant_factory(chrom="chr2", pos=7)],
        )

        regions = RegionSet.from_file(path)

        assert regions.contains("chr1", 100)
        assert not regions.contains("chr1", 101)
        assert regions.contains("chr2", 7)

    def test_missing_file(self, tmp_path):
        from vcf_pca.errors import RegionSpecError
        from vcf_pca.regions import RegionSet

        with pytest.raises(RegionSpecError, match="not found"):
            RegionSet.from_file(tmp_path / "nope.txt")

    def test_malformed_line(self, tmp_path):
        from vcf_pca.errors import RegionSpecError
        from vcf_pca.regions import RegionSet

        path = tmp_path / "bad.txt"
        path.write_text("chr1\tabc\n")

        with pytest.raises(RegionSpecError, match="bad.txt:1"):
            RegionSet.from_file(path)

    def test_is_vcf_path(self):
        from vcf_pca.regions import is_vcf_path

        assert is_vcf_path("panel.vcf.gz")
        assert is_vcf_path("panel.BCF")
        assert not is_vcf_path("regions.bed")
