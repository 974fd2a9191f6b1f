"""Error taxonomy shared by the feed client, the parser and the sync engine."""


class SiaterError(Exception):
    """Base class for every error raised by the sync engine."""


class ConfigurationError(SiaterError):
    """The configuration cannot produce a usable request (e.g. no feed URL)."""


class FetchError(SiaterError):
    """A feed page could not be retrieved; the caller retries on a later trigger."""


class RecordParseError(SiaterError):
    """A single feed record is malformed and gets dropped."""


class CatalogError(SiaterError):
    """A read or write against the product catalog failed."""


class CatalogItemNotFound(CatalogError):
    """The catalog has no live item with the requested id."""


class ReconciliationError(CatalogError):
    """A record could not be reconciled against the catalog."""


class LockContentionError(SiaterError):
    """Another sync run holds a fresh lock."""


class CleanupAborted(SiaterError):
    """The cleanup cycle cannot proceed and must collapse back to idle."""
