"""Data models for package versions and version ranges."""

from dataclasses import dataclass, field
from functools import total_ordering
from typing import Optional, Tuple

import semantic_version

# NuGet versions carry up to four numeric parts (major.minor.patch.revision).
RELEASE_PARTS = 4


@total_ordering
@dataclass(frozen=True, eq=False)
class PackageVersion:
    """Parsed NuGet package version.

    Numeric parts are compared after padding to four components, so ``1.0``,
    ``1.0.0`` and ``1.0.0.0`` are equal. Prerelease labels follow SemVer 2.0
    precedence and a release always outranks its prereleases. Build metadata
    never participates in ordering or equality.
    """
    release: Tuple[int, ...]
    prerelease: Tuple[str, ...] = ()
    metadata: str = ""
    original: str = field(default="", compare=False)

    @property
    def is_prerelease(self) -> bool:
        """True when the version carries a prerelease label."""
        return bool(self.prerelease)

    @property
    def padded_release(self) -> Tuple[int, ...]:
        return self.release + (0,) * (RELEASE_PARTS - len(self.release))

    @property
    def normalized(self) -> str:
        """Canonical text: at least three numeric parts, revision only when non-zero."""
        parts = list(self.padded_release)
        if parts[3] == 0:
            parts = parts[:3]
        text = ".".join(str(p) for p in parts)
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        return text

    def _precedence(self) -> Tuple[Tuple[int, ...], semantic_version.Version]:
        # semantic_version handles identifier-wise prerelease comparison
        # (numeric < alphanumeric, shorter label < longer label, release > prerelease)
        label = semantic_version.Version(major=0, minor=0, patch=0, prerelease=self.prerelease)
        return self.padded_release, label

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageVersion):
            return NotImplemented
        return self.padded_release == other.padded_release and self.prerelease == other.prerelease

    def __lt__(self, other: "PackageVersion") -> bool:
        if not isinstance(other, PackageVersion):
            return NotImplemented
        return self._precedence() < other._precedence()

    def __hash__(self) -> int:
        return hash((self.padded_release, self.prerelease))

    def __str__(self) -> str:
        return self.original or self.normalized


@dataclass(frozen=True)
class VersionRange:
    """Interval of package versions; a missing bound is unbounded on that side."""
    minimum: Optional[PackageVersion] = None
    maximum: Optional[PackageVersion] = None
    include_minimum: bool = True
    include_maximum: bool = False
    original: str = field(default="", compare=False)

    def contains(self, version: PackageVersion) -> bool:
        """Return True when ``version`` satisfies both bounds."""
        if self.minimum is not None:
            if version < self.minimum:
                return False
            if version == self.minimum and not self.include_minimum:
                return False
        if self.maximum is not None:
            if version > self.maximum:
                return False
            if version == self.maximum and not self.include_maximum:
                return False
        return True

    def __contains__(self, version: PackageVersion) -> bool:
        return self.contains(version)

    def __str__(self) -> str:
        if self.original:
            return self.original
        lower = str(self.minimum) if self.minimum is not None else ""
        upper = str(self.maximum) if self.maximum is not None else ""
        return f"{'[' if self.include_minimum else '('}{lower},{upper}{']' if self.include_maximum else ')'}"
