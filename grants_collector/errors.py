"""Error taxonomy for the extract collection pipeline."""

from typing import Optional


class CollectorError(Exception):
    """Base class for all collector errors."""


class FatalCollectionError(CollectorError):
    """An error that ends a collection run before any record is processed."""


class NoExtractAvailable(FatalCollectionError):
    """No extract could be downloaded for any date/variant in the look-back window."""


class CorruptExtract(FatalCollectionError):
    """The downloaded extract could not be decompressed."""


class ParseFailure(FatalCollectionError):
    """The decompressed extract is not a well-formed XML document."""


class RecordReconciliationError(CollectorError):
    """Persisting a single opportunity record failed."""

    def __init__(self, opportunity_id: Optional[str], cause: BaseException):
        self.opportunity_id = opportunity_id
        self.cause = cause
        super().__init__(f"Failed to process opportunity {opportunity_id}: {cause}")


class BatchError(CollectorError):
    """An exception escaped batch processing as a whole."""

    def __init__(self, batch_number: int, cause: BaseException):
        self.batch_number = batch_number
        self.cause = cause
        super().__init__(f"Batch processing error: {cause}")


class ServiceSetupError(CollectorError):
    """Configuration or the storage client could not be initialized for a request."""
