"""Version and version-range model for NuGet packages."""

from .models import PackageVersion, VersionRange
from .parser import InvalidVersionError, is_range_expression, parse_range, parse_version

__all__ = [
    "PackageVersion",
    "VersionRange",
    "InvalidVersionError",
    "is_range_expression",
    "parse_range",
    "parse_version",
]
