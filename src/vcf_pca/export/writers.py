"""Result sinks for PCA runs.

Supports:
- Score rows: sample id followed by tab-separated PC coordinates
- Singular values: one value per line, in decreasing order
- Loading panel: site-only VCF with INFO/AF and INFO/WEIGHT, readable by a
  later projection run (VCF ``v``, BGZF VCF ``z``, BCF ``b`` or
  uncompressed BCF ``u``)
"""

import logging
from collections.abc import Sequence
from datetime import date
from pathlib import Path

import numpy as np
from cyvcf2 import Writer

from .. import __version__
from ..config import ConfigValidationError
from ..models import VariantRecord
from ..standardization import NormalizationMode
from ..vcf_parser import NORMALIZATION_HEADER_KEY

logger = logging.getLogger(__name__)

# -O value to cyvcf2 Writer mode
OUTPUT_TYPES = {"v": "w", "z": "wz", "b": "wb", "u": "wbu"}


def format_float(value: float) -> str:
    """Format a coordinate or loading; NaN is written as ``nan``."""
    if np.isnan(value):
        return "nan"
    return f"{value:.10g}"


def format_score_rows(sample_ids: Sequence[str], scores: np.ndarray) -> list[str]:
    """One ``id\\tPC0\\tPC1...`` line per sample, without trailing newline."""
    rows = []
    for sample_id, row in zip(sample_ids, scores, strict=True):
        rows.append("\t".join([sample_id, *(format_float(v) for v in row)]))
    return rows


def write_singular_values(output_path: Path, singular_values: np.ndarray) -> int:
    """Write singular values, one per line.

    Returns:
        Number of values written
    """
    with open(output_path, "w") as f:
        for value in singular_values:
            f.write(f"{format_float(float(value))}\n")

    logger.info("Wrote %d singular values to %s", len(singular_values), output_path)
    return len(singular_values)


def loading_panel_header(
    contigs: Sequence[str], n_components: int, mode: NormalizationMode
) -> list[str]:
    lines = [
        "##fileformat=VCFv4.2",
        f"##fileDate={date.today():%Y%m%d}",
        f"##source=vcf-pca {__version__}",
        f"##{NORMALIZATION_HEADER_KEY}={int(mode)}",
    ]
    lines.extend(f"##contig=<ID={contig}>" for contig in contigs)
    lines.extend([
        '##INFO=<ID=AF,Number=A,Type=Float,Description="Alternate allele frequency">',
        f'##INFO=<ID=WEIGHT,Number={n_components},Type=Float,Description="PCA loading">',
        "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO",
    ])
    return lines


def write_loading_panel(
    output_path: Path,
    records: Sequence[VariantRecord],
    af: np.ndarray,
    loadings: np.ndarray,
    mode: NormalizationMode,
    output_type: str = "v",
) -> int:
    """Export per-site loadings for projection in a later run.

    Args:
        output_path: Destination file
        records: Retained sites, aligned with the rows of ``loadings``
        af: Alternate allele frequency of each retained site
        loadings: M x K loading matrix
        mode: Normalization mode the loadings were computed with
        output_type: ``v`` VCF, ``z`` BGZF-compressed VCF, ``b`` BCF or
            ``u`` uncompressed BCF

    Returns:
        Number of sites written

    Raises:
        ConfigValidationError: For relationship-matrix runs, whose singular
            vectors are per sample rather than per site, or an unknown
            output type.
    """
    if mode == NormalizationMode.RELATIONSHIP:
        raise ConfigValidationError(
            "Loadings cannot be exported for covdef 2: singular vectors are per sample"
        )
    if output_type not in OUTPUT_TYPES:
        raise ConfigValidationError(
            f"output type must be one of {sorted(OUTPUT_TYPES)}, got '{output_type}'"
        )
    if loadings.shape[0] != len(records):
        raise ValueError(f"{loadings.shape[0]} loading rows for {len(records)} sites")

    contigs = list(dict.fromkeys(r.chrom for r in records))
    header = loading_panel_header(contigs, loadings.shape[1], mode)

    writer = Writer.from_string(
        str(output_path), "\n".join(header) + "\n", mode=OUTPUT_TYPES[output_type]
    )
    try:
        for record, site_af, weights in zip(records, af, loadings, strict=True):
            if not np.all(np.isfinite(weights)):
                weights = np.full_like(weights, np.nan)
            info = (
                f"AF={format_float(float(site_af))};"
                f"WEIGHT={','.join(format_float(float(w)) for w in weights)}"
            )
            line = (
                f"{record.chrom}\t{record.pos}\t{record.rs_id or '.'}\t{record.ref}\t"
                f"{record.alt}\t.\t.\t{info}"
            )
            writer.write_record(writer.variant_from_string(line))
    finally:
        writer.close()

    logger.info("Printing coefficients to %s (%d sites)", output_path, len(records))
    return len(records)
