"""Fatal conditions raised by the PCA engine.

Every error here aborts the run; the command line maps them to a diagnostic
on stderr and a nonzero exit status.
"""


class PCAError(Exception):
    """Base class for fatal PCA errors."""

    pass


class NoSamplesError(PCAError):
    """Raised when the genotype source contains no samples."""

    pass


class SourceOpenError(PCAError):
    """Raised when a VCF/BCF source cannot be opened or queried by region."""

    pass


class RegionSpecError(PCAError):
    """Raised for malformed or conflicting region/target specifications."""

    pass


class MissingAnnotationError(PCAError):
    """Raised when a required INFO annotation (AF, WEIGHT) is absent."""

    pass


class PloidyError(PCAError):
    """Raised when a non-diploid genotype is found at a used site."""

    def __init__(self, locus: str, sample_id: str):
        self.locus = locus
        self.sample_id = sample_id
        super().__init__(f"Fix ploidy on {locus} sample {sample_id}")


class DosageRangeError(PCAError):
    """Raised when a dosage lies outside [0, 2] after imputation."""

    pass


class NonFiniteScoreError(PCAError):
    """Raised when a projected score becomes NaN."""

    pass


class InsufficientOverlapError(PCAError):
    """Raised when too few panel sites are present in the genotype source."""

    pass


class NoIntersectingSitesError(PCAError):
    """Raised when no usable sites remain after filtering and intersection."""

    pass


class LoadingLengthError(PCAError):
    """Raised when a loading vector is shorter than the component count."""

    pass


class UnsortedInputError(PCAError):
    """Raised when a source is not sorted by coordinate."""

    pass
