"""Region and target specifications for site filtering.

Region strings follow the bcftools convention: a comma-separated list of
``chr``, ``chr:pos``, ``chr:beg-end`` or ``chr:beg-`` items, 1-based and
inclusive. Region files are tab-delimited ``CHROM POS`` or
``CHROM BEG END`` (BED files are 0-based, half-open), or a sites VCF.
"""

import bisect
import gzip
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from .errors import RegionSpecError

logger = logging.getLogger(__name__)

MAX_POSITION = 2**31 - 1

VCF_SUFFIXES = (".vcf", ".vcf.gz", ".vcf.bgz", ".bcf")
BED_SUFFIXES = (".bed", ".bed.gz")

_REGION_PATTERN = re.compile(r"^(?P<chrom>[^:]+)(?::(?P<beg>\d+)(?P<dash>-)?(?P<end>\d+)?)?$")


@dataclass(frozen=True)
class Region:
    """A 1-based inclusive interval on one contig."""

    chrom: str
    start: int = 1
    end: int = MAX_POSITION

    def query_string(self) -> str:
        if self.start == 1 and self.end == MAX_POSITION:
            return self.chrom
        return f"{self.chrom}:{self.start}-{self.end}"


def is_vcf_path(path: Path | str) -> bool:
    return str(path).lower().endswith(VCF_SUFFIXES)


def parse_region(item: str) -> Region:
    """Parse one region item such as ``chr1:100-200``."""
    match = _REGION_PATTERN.match(item.strip())
    if not item.strip() or match is None:
        raise RegionSpecError(f"Malformed region: '{item}'")

    chrom = match.group("chrom")
    beg = match.group("beg")
    if beg is None:
        return Region(chrom)

    start = int(beg)
    if match.group("end") is not None:
        end = int(match.group("end"))
    elif match.group("dash"):
        end = MAX_POSITION
    else:
        end = start

    if start < 1 or end < start:
        raise RegionSpecError(f"Malformed region: '{item}'")
    return Region(chrom, start, end)


class RegionSet:
    """Set of intervals with merged overlaps and fast membership tests."""

    def __init__(self, regions: list[Region] | None = None):
        self._intervals: dict[str, list[tuple[int, int]]] = {}
        self._starts: dict[str, list[int]] = {}
        self.contigs: list[str] = []
        for region in regions or []:
            self.add(region)

    def add(self, region: Region) -> None:
        if region.chrom not in self._intervals:
            self._intervals[region.chrom] = []
            self.contigs.append(region.chrom)
        self._intervals[region.chrom].append((region.start, region.end))
        self._starts.pop(region.chrom, None)

    def _merged(self, chrom: str) -> list[tuple[int, int]]:
        if chrom not in self._starts:
            merged: list[tuple[int, int]] = []
            for start, end in sorted(self._intervals[chrom]):
                if merged and start <= merged[-1][1] + 1:
                    merged[-1] = (merged[-1][0], max(merged[-1][1], end))
                else:
                    merged.append((start, end))
            self._intervals[chrom] = merged
            self._starts[chrom] = [start for start, _ in merged]
        return self._intervals[chrom]

    def contains(self, chrom: str, pos: int) -> bool:
        if chrom not in self._intervals:
            return False
        intervals = self._merged(chrom)
        idx = bisect.bisect_right(self._starts[chrom], pos) - 1
        return idx >= 0 and pos <= intervals[idx][1]

    def regions(self, contig_order: list[str] | None = None) -> list[Region]:
        """Merged regions, contigs ordered as in ``contig_order`` when given."""
        contigs = list(self.contigs)
        if contig_order:
            rank = {c: i for i, c in enumerate(contig_order)}
            contigs.sort(key=lambda c: rank.get(c, len(rank)))
        return [
            Region(chrom, start, end)
            for chrom in contigs
            for start, end in self._merged(chrom)
        ]

    def __len__(self) -> int:
        return sum(len(self._merged(chrom)) for chrom in self.contigs)

    @classmethod
    def from_string(cls, text: str) -> "RegionSet":
        items = [item for item in text.split(",") if item.strip()]
        if not items:
            raise RegionSpecError(f"Malformed region: '{text}'")
        return cls([parse_region(item) for item in items])

    @classmethod
    def from_file(cls, path: Path) -> "RegionSet":
        """Read a tab-delimited regions file or a sites VCF."""
        if not path.exists():
            raise RegionSpecError(f"Regions file not found: {path}")

        if is_vcf_path(path):
            from .vcf_parser import read_site_list

            return cls([Region(r.chrom, r.pos, r.pos) for r in read_site_list(path)])

        bed = str(path).lower().endswith(BED_SUFFIXES)
        opener = gzip.open if path.suffix == ".gz" else open
        region_set = cls()
        with opener(path, "rt") as f:
            for line_num, line in enumerate(f, start=1):
                if not line.strip() or line.startswith(("#", "track", "browser")):
                    continue
                region_set.add(_parse_region_line(line, line_num, path, bed))

        if not region_set.contigs:
            raise RegionSpecError(f"No regions found in {path}")
        logger.info("Read %d regions from %s", len(region_set), path)
        return region_set


def _parse_region_line(line: str, line_num: int, path: Path, bed: bool) -> Region:
    fields = line.rstrip("\n").split("\t")
    if len(fields) < 2:
        fields = line.split()
    try:
        chrom = fields[0]
        if len(fields) == 2:
            start = end = int(fields[1])
        else:
            start, end = int(fields[1]), int(fields[2])
            if bed:
                start += 1
    except (IndexError, ValueError):
        raise RegionSpecError(f"Malformed region at {path}:{line_num}: {line.strip()}") from None

    if start < 1 or end < start:
        raise RegionSpecError(f"Malformed region at {path}:{line_num}: {line.strip()}")
    return Region(chrom, start, end)
