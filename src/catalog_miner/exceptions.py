"""Exception types raised by the catalog miner."""


class MinerError(Exception):
    """Base class for all catalog miner errors."""
    pass


class ExtractionError(MinerError):
    """A detail page could not be turned into a record.

    Raised when a mandatory field is missing or cannot be parsed. The ID is
    left unrecorded so that a later run retries it.
    """
    pass


class StructuralError(ExtractionError):
    """The page layout does not match what the extractor expects."""
    pass


class TransportError(MinerError):
    """The detail page could not be fetched (network error or non-200)."""
    pass


class StorageError(MinerError):
    """A chunk file could not be read or written. Aborts the run."""
    pass
