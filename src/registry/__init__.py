"""Package source abstraction: package model, shared contract and strategies."""

from .errors import CatalogParseError, PackageSourceError, SearchCancelledError, UnsupportedRangeError
from .package import DependencyGroup, Package, PackageIdentifier
from .source import CancellationToken, PackageSource, SourceConfig, create_source

__all__ = [
    "CatalogParseError",
    "PackageSourceError",
    "SearchCancelledError",
    "UnsupportedRangeError",
    "DependencyGroup",
    "Package",
    "PackageIdentifier",
    "CancellationToken",
    "PackageSource",
    "SourceConfig",
    "create_source",
]
