"""VCF/BCF reading for genotype sources, site lists and loading panels."""

import itertools
import logging
import re
from collections.abc import Iterator
from pathlib import Path

import numpy as np
from cyvcf2 import VCF

from .errors import NoSamplesError, SourceOpenError
from .models import HAPLOID, MISSING, VariantRecord
from .regions import RegionSet
from .standardization import NormalizationMode

logger = logging.getLogger(__name__)

NORMALIZATION_HEADER_KEY = "vcf_pca_normalization"


class VCFHeaderParser:
    """Parser for the header lines the PCA tools rely on."""

    def parse_info_fields(self, header_lines: list[str]) -> dict[str, dict[str, str]]:
        """Parse INFO field definitions from header lines."""
        info_fields = {}
        info_pattern = re.compile(r'##INFO=<(.+)>')

        for line in header_lines:
            match = info_pattern.match(line)
            if match:
                field_def = self._parse_field_definition(match.group(1))
                if field_def:
                    info_fields[field_def['ID']] = {
                        k: v for k, v in field_def.items() if k != 'ID'
                    }

        return info_fields

    def parse_contigs(self, header_lines: list[str]) -> list[str]:
        """Contig IDs in declaration order."""
        contig_pattern = re.compile(r'##contig=<(.+)>')
        contigs = []

        for line in header_lines:
            match = contig_pattern.match(line)
            if match:
                field_def = self._parse_field_definition(match.group(1))
                if field_def:
                    contigs.append(field_def['ID'])

        return contigs

    def parse_normalization(self, header_lines: list[str]) -> NormalizationMode:
        """Normalization mode a loading panel was computed with (default 1)."""
        prefix = f"##{NORMALIZATION_HEADER_KEY}="
        for line in header_lines:
            if line.startswith(prefix):
                value = line[len(prefix):].strip()
                try:
                    return NormalizationMode(int(value))
                except ValueError:
                    raise SourceOpenError(f"Invalid {NORMALIZATION_HEADER_KEY} header: {value}") from None
        return NormalizationMode.STANDARDIZED

    def _parse_field_definition(self, field_string: str) -> dict[str, str] | None:
        """Parse a field definition string like 'ID=AC,Number=A,Type=Integer,Description="..."'"""
        field_def = {}

        # Handle quoted descriptions that may contain commas
        parts = []
        current_part = ""
        in_quotes = False

        for char in field_string:
            if char == '"':
                in_quotes = not in_quotes
                current_part += char
            elif char == ',' and not in_quotes:
                parts.append(current_part)
                current_part = ""
            else:
                current_part += char

        if current_part:
            parts.append(current_part)

        for part in parts:
            if '=' in part:
                key, value = part.split('=', 1)
                if key == 'Description' and value.startswith('"') and value.endswith('"'):
                    value = value[1:-1]
                field_def[key] = value

        return field_def if 'ID' in field_def else None


def open_vcf(path: Path | str, samples: list[str] | None = None) -> VCF:
    """Open a VCF/BCF file, optionally restricted to a sample subset."""
    path = Path(path)
    if not path.exists():
        raise SourceOpenError(f"Problem opening {path}: file not found")
    try:
        if samples is not None:
            return VCF(str(path), samples=samples)
        return VCF(str(path))
    except Exception as e:
        raise SourceOpenError(f"Problem opening {path}: {e}") from e


def header_lines(vcf: VCF) -> list[str]:
    return vcf.raw_header.splitlines()


def diploid_dosages(genotypes: list[list]) -> np.ndarray:
    """Convert cyvcf2 genotypes to allele dosages.

    Each entry of ``genotypes`` is ``[allele, ..., phased]``. A call with any
    missing allele is MISSING; a call that is not diploid is HAPLOID.
    The dosage is the sum of the two allele indices.
    """
    dosages = np.empty(len(genotypes), dtype=np.int16)
    for i, gt in enumerate(genotypes):
        alleles = gt[:-1]
        if len(alleles) != 2:
            dosages[i] = HAPLOID
        elif alleles[0] < 0 or alleles[1] < 0:
            dosages[i] = MISSING
        else:
            dosages[i] = alleles[0] + alleles[1]
    return dosages


def _first_alt(variant) -> str:
    alts = variant.ALT
    return alts[0] if alts else "."


def _info_value(variant, key: str):
    try:
        return variant.INFO.get(key)
    except KeyError:
        return None


class GenotypeReader:
    """Streams VariantRecords with per-sample dosages from a VCF/BCF file.

    Args:
        path: Genotype source
        samples: Optional sample subset
        regions: Optional region set
        use_index: Jump to regions through the index (regions) instead of
            filtering the whole stream (targets)
    """

    def __init__(
        self,
        path: Path | str,
        samples: list[str] | None = None,
        regions: RegionSet | None = None,
        use_index: bool = False,
    ):
        self.path = Path(path)
        self.regions = regions
        self.use_index = use_index
        self._vcf = open_vcf(self.path, samples)
        self.samples: list[str] = list(self._vcf.samples)
        if not self.samples:
            self._vcf.close()
            raise NoSamplesError(f"No samples found in {self.path}")
        self.contigs = VCFHeaderParser().parse_contigs(header_lines(self._vcf))
        logger.info("%d samples", len(self.samples))

    def __iter__(self) -> Iterator[VariantRecord]:
        for variant in self._variants():
            if self.regions is not None and not self.regions.contains(variant.CHROM, variant.POS):
                continue
            yield VariantRecord(
                chrom=variant.CHROM,
                pos=variant.POS,
                ref=variant.REF,
                alt=_first_alt(variant),
                rs_id=variant.ID,
                dosages=diploid_dosages(variant.genotypes),
            )

    def _variants(self):
        if self.regions is None or not self.use_index:
            yield from self._vcf
            return

        for region in self.regions.regions(self.contigs):
            # cyvcf2 loads the index lazily, on the first record of a query
            try:
                query = iter(self._vcf(region.query_string()))
                first = next(query, None)
            except Exception as e:
                raise SourceOpenError(
                    f"Cannot query region {region.query_string()} in {self.path}; "
                    f"is the file indexed? ({e})"
                ) from e

            for variant in itertools.chain([first] if first is not None else [], query):
                # records starting before the region belong to an earlier query
                if variant.POS >= region.start:
                    yield variant

    def close(self) -> None:
        self._vcf.close()

    def __enter__(self) -> "GenotypeReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class LoadingPanelReader:
    """Streams sites of a loading panel with their AF and WEIGHT annotations."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._vcf = open_vcf(self.path)
        parser = VCFHeaderParser()
        lines = header_lines(self._vcf)
        self.contigs = parser.parse_contigs(lines)
        self.normalization = parser.parse_normalization(lines)
        info_fields = parser.parse_info_fields(lines)
        for key in ("AF", "WEIGHT"):
            if key not in info_fields:
                logger.warning("INFO/%s is not declared in the header of %s", key, self.path)

    def __iter__(self) -> Iterator[VariantRecord]:
        for variant in self._vcf:
            loadings = _info_value(variant, "WEIGHT")
            yield VariantRecord(
                chrom=variant.CHROM,
                pos=variant.POS,
                ref=variant.REF,
                alt=_first_alt(variant),
                rs_id=variant.ID,
                af=_info_value(variant, "AF"),
                loadings=None if loadings is None else np.atleast_1d(
                    np.asarray(loadings, dtype=np.float64)
                ),
            )

    def close(self) -> None:
        self._vcf.close()

    def __enter__(self) -> "LoadingPanelReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class SiteListReader:
    """Streams the positions and alleles of a sites VCF."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._vcf = open_vcf(self.path)
        self.contigs = VCFHeaderParser().parse_contigs(header_lines(self._vcf))

    def __iter__(self) -> Iterator[VariantRecord]:
        for variant in self._vcf:
            yield VariantRecord(
                chrom=variant.CHROM,
                pos=variant.POS,
                ref=variant.REF,
                alt=_first_alt(variant),
                rs_id=variant.ID,
            )

    def close(self) -> None:
        self._vcf.close()


def read_site_list(path: Path | str) -> list[VariantRecord]:
    """Read every site of a sites VCF into memory."""
    reader = SiteListReader(path)
    try:
        return list(reader)
    finally:
        reader.close()
