"""Error taxonomy for package source operations.

Transport failures are ``common.http_client.TransportError``. Expected
absence (no archive, no matching version) is never an exception: queries
return empty results or None instead.
"""


class PackageSourceError(Exception):
    """Base class for package source failures."""


class UnsupportedRangeError(PackageSourceError, ValueError):
    """An exact-version-only operation was invoked with a version range."""


class CatalogParseError(PackageSourceError):
    """A catalog document or package archive could not be parsed."""


class SearchCancelledError(PackageSourceError):
    """A search was cancelled through its CancellationToken before completing."""
