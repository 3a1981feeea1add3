"""NuGet package sources.

This package provides the NuGet source strategies:
- local.py: folders of .nupkg archives (flat and hierarchical layouts)
- v2.py: remote feeds speaking the V2 (OData) API, with GetUpdates() fallback
- nuspec.py: package records read from the .nuspec inside an archive
- odata.py: package records parsed from OData Atom feed documents
- config.py: package sources loaded from NuGet.config files
"""

from .config import load_sources
from .local import LocalPackageSource
from .nuspec import parse_nuspec, read_nupkg
from .odata import parse_dependencies, parse_feed
from .v2 import UpdateProtocol, V2PackageSource

__all__ = [
    # Strategies
    "LocalPackageSource",
    "V2PackageSource",
    "UpdateProtocol",
    # Parsers
    "read_nupkg",
    "parse_nuspec",
    "parse_feed",
    "parse_dependencies",
    # Configuration
    "load_sources",
]
