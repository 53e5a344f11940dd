"""Coordinate-synchronized iteration over several sorted record streams.

Each source must be sorted by contig and position. Contigs follow the
order of the headers' contig lines where they are declared. The merged
stream yields one MergedSite per coordinate and allele pairing, with a
slot per source telling which sources carry the site.
"""

import logging
from collections.abc import Iterable, Iterator

from .errors import UnsortedInputError
from .models import MergedSite, VariantRecord

logger = logging.getLogger(__name__)


class ContigOrder:
    """Contig order shared by the sources of a merge.

    Declared contig lists are merged so that the relative order of each
    list holds. A contig a source reaches without declaring it is placed
    right after the contig that source read before it.
    """

    def __init__(self, *contig_lists: Iterable[str]):
        self._contigs: list[str] = []
        self._ranks: dict[str, int] = {}
        for contigs in contig_lists:
            self.add(contigs)

    def add(self, contigs: Iterable[str]) -> None:
        previous = None
        for contig in contigs:
            self.place(contig, after=previous)
            previous = contig

    def place(self, chrom: str, after: str | None = None) -> None:
        """Insert an unseen contig after ``after``, or first when it is None."""
        if chrom in self._ranks:
            return
        index = 0 if after is None else self.rank(after) + 1
        self._contigs.insert(index, chrom)
        self._ranks = {contig: i for i, contig in enumerate(self._contigs)}

    def rank(self, chrom: str) -> int:
        if chrom not in self._ranks:
            self._ranks[chrom] = len(self._contigs)
            self._contigs.append(chrom)
        return self._ranks[chrom]

    def key(self, record: VariantRecord) -> tuple[int, int]:
        return (self.rank(record.chrom), record.pos)


def alleles_compatible(a: VariantRecord, b: VariantRecord) -> bool:
    """Whether two records at the same position describe the same site.

    A record without an alternate allele (site list or monomorphic
    reference call) pairs with anything.
    """
    if a.alt == "." or b.alt == ".":
        return True
    return a.allele_key == b.allele_key


class _Source:
    def __init__(self, index: int, records: Iterable[VariantRecord], order: ContigOrder):
        self.index = index
        self.order = order
        self._iter = iter(records)
        self._previous: VariantRecord | None = None
        self._passed: set[str] = set()
        self.head: VariantRecord | None = None
        self.advance()

    def advance(self) -> None:
        self.head = next(self._iter, None)
        if self.head is None:
            return

        head, previous = self.head, self._previous
        if previous is None:
            self.order.place(head.chrom)
        elif head.chrom == previous.chrom:
            if head.pos < previous.pos:
                raise UnsortedInputError(
                    f"Source {self.index} is not sorted: {head.locus} after {previous.locus}"
                )
        else:
            self.order.place(head.chrom, after=previous.chrom)
            if head.chrom in self._passed or (
                self.order.rank(head.chrom) < self.order.rank(previous.chrom)
            ):
                raise UnsortedInputError(
                    f"Source {self.index} is not sorted: {head.locus} after {previous.locus}"
                )
            self._passed.add(previous.chrom)
        self._previous = head

    def take(self, chrom: str, pos: int) -> list[VariantRecord]:
        taken = []
        while self.head is not None and (self.head.chrom, self.head.pos) == (chrom, pos):
            taken.append(self.head)
            self.advance()
        return taken


def _pair_records(
    groups: list[list[VariantRecord]], match_alleles: bool
) -> list[list[VariantRecord | None]]:
    n_sources = len(groups)
    sites: list[list[VariantRecord | None]] = []
    for src, records in enumerate(groups):
        for record in records:
            for slots in sites:
                if slots[src] is not None:
                    continue
                if not match_alleles or all(
                    alleles_compatible(other, record) for other in slots if other is not None
                ):
                    slots[src] = record
                    break
            else:
                slots = [None] * n_sources
                slots[src] = record
                sites.append(slots)
    return sites


def merge_sorted(
    *sources: Iterable[VariantRecord],
    order: ContigOrder | None = None,
    match_alleles: bool = True,
) -> Iterator[MergedSite]:
    """Join sorted record streams by coordinate.

    Args:
        sources: Record streams sorted by contig and position
        order: Contig order shared by all sources, seeded with the
            declared contig lists; undeclared contigs are placed as the
            sources reach them
        match_alleles: Pair records at one position by (REF, ALT)

    Yields:
        MergedSite with ``records[i]`` set when source ``i`` carries the site

    Raises:
        UnsortedInputError: If a source goes backwards or returns to a
            contig it already left.
    """
    order = order or ContigOrder()
    streams = [_Source(i, records, order) for i, records in enumerate(sources)]

    while True:
        heads = [s.head for s in streams if s.head is not None]
        if not heads:
            return

        first = min(heads, key=order.key)
        chrom, pos = first.chrom, first.pos
        groups = [s.take(chrom, pos) for s in streams]

        for slots in _pair_records(groups, match_alleles):
            yield MergedSite(chrom=chrom, pos=pos, records=tuple(slots))
