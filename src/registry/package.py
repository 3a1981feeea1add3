"""Package identifier and package record models shared by all sources."""
from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from versioning import PackageVersion, VersionRange, is_range_expression, parse_range, parse_version

_LOWEST_VERSION = PackageVersion(release=(0,))


class PackageIdentifier:
    """Package id plus an exact version or a version range.

    Ids compare case-insensitively. Sorting orders by id ascending, then by
    version descending, so the newest version of each id comes first.
    """

    def __init__(self, id: str, version: Optional[str] = None):  # pylint: disable=redefined-builtin
        self._id = id
        self._version = (version or "").strip()
        self._parsed: Optional[PackageVersion] = None
        self._range: Optional[VersionRange] = None
        if self._version:
            if is_range_expression(self._version):
                self._range = parse_range(self._version)
            else:
                self._parsed = parse_version(self._version)

    @property
    def id(self) -> str:
        return self._id

    @property
    def version(self) -> str:
        return self._version

    @property
    def has_version_range(self) -> bool:
        """True when ``version`` is an interval expression rather than an exact version."""
        return self._range is not None

    @property
    def package_version(self) -> Optional[PackageVersion]:
        """Parsed exact version; None for ranges and unversioned identifiers."""
        return self._parsed

    @property
    def version_range(self) -> Optional[VersionRange]:
        """Range this identifier accepts; a bare version is a minimum-inclusive range."""
        if self._range is not None:
            return self._range
        if self._parsed is not None:
            return VersionRange(minimum=self._parsed, include_minimum=True, original=self._version)
        return None

    def in_range(self, other: Union["PackageIdentifier", PackageVersion, str]) -> bool:
        """Return True when the other identifier's version satisfies this identifier's range."""
        if isinstance(other, PackageIdentifier):
            candidate = other.package_version
        elif isinstance(other, PackageVersion):
            candidate = other
        else:
            candidate = parse_version(other)

        accepted = self.version_range
        if accepted is None:
            return True
        if candidate is None:
            return False
        return accepted.contains(candidate)

    def matches_id(self, other_id: str) -> bool:
        return self._id.casefold() == other_id.casefold()

    def _ordering_version(self) -> PackageVersion:
        if self._parsed is not None:
            return self._parsed
        if self._range is not None and self._range.minimum is not None:
            return self._range.minimum
        return _LOWEST_VERSION

    def __lt__(self, other: "PackageIdentifier") -> bool:
        if not isinstance(other, PackageIdentifier):
            return NotImplemented
        mine, theirs = self._id.casefold(), other._id.casefold()
        if mine != theirs:
            return mine < theirs
        return self._ordering_version() > other._ordering_version()

    def __gt__(self, other: "PackageIdentifier") -> bool:
        if not isinstance(other, PackageIdentifier):
            return NotImplemented
        return other < self

    def __le__(self, other: "PackageIdentifier") -> bool:
        if not isinstance(other, PackageIdentifier):
            return NotImplemented
        return not other < self

    def __ge__(self, other: "PackageIdentifier") -> bool:
        if not isinstance(other, PackageIdentifier):
            return NotImplemented
        return not self < other

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageIdentifier):
            return NotImplemented
        if not self.matches_id(other._id):
            return False
        if self.has_version_range or other.has_version_range:
            return self._version == other._version
        return self._parsed == other._parsed

    def __hash__(self) -> int:
        if self.has_version_range:
            return hash((self._id.casefold(), self._version))
        return hash((self._id.casefold(), self._parsed))

    def __str__(self) -> str:
        return f"{self._id}.{self._version}" if self._version else self._id

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._id!r}, {self._version!r})"


@dataclass
class DependencyGroup:
    """Dependencies declared for one target framework ("" means any framework)."""
    target_framework: str = ""
    dependencies: List[PackageIdentifier] = field(default_factory=list)


class Package(PackageIdentifier):
    """A resolved package offered by a source.

    ``versions`` lists every version known for this id; it always contains
    the package's own version and never holds duplicates. The owning source
    is held through a weak reference so packages never keep it alive.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        id: str,  # pylint: disable=redefined-builtin
        version: str,
        *,
        source: Any = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
        authors: Optional[str] = None,
        release_notes: Optional[str] = None,
        license_url: Optional[str] = None,
        project_url: Optional[str] = None,
        repository_url: Optional[str] = None,
        download_url: Optional[str] = None,
        download_count: int = 0,
        dependencies: Optional[List[DependencyGroup]] = None,
    ):
        super().__init__(id, version)
        if self.package_version is None:
            raise ValueError(f"Package '{id}' needs an exact version, got '{version}'")
        self.title = title or id
        self.description = description or ""
        self.authors = authors or ""
        self.release_notes = release_notes or ""
        self.license_url = license_url
        self.project_url = project_url
        self.repository_url = repository_url
        self.download_url = download_url
        self.download_count = download_count
        self.dependencies: List[DependencyGroup] = dependencies or []
        self._versions: List[PackageVersion] = [self.package_version]
        self._source_ref = weakref.ref(source) if source is not None else None

    @property
    def is_prerelease(self) -> bool:
        return self.package_version.is_prerelease

    @property
    def source(self):
        """Owning source, or None once it has been discarded."""
        return self._source_ref() if self._source_ref is not None else None

    @property
    def versions(self) -> List[PackageVersion]:
        """Known versions for this id, in insertion order (a copy)."""
        return list(self._versions)

    def add_version(self, version: Union[PackageVersion, str]) -> None:
        parsed = version if isinstance(version, PackageVersion) else parse_version(version)
        if parsed not in self._versions:
            self._versions.append(parsed)

    def add_versions(self, versions: Iterable[Union[PackageVersion, str]]) -> None:
        for version in versions:
            self.add_version(version)

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation used for JSON output."""
        source = self.source
        return {
            "id": self.id,
            "version": self.version,
            "versions": [str(v) for v in self._versions],
            "is_prerelease": self.is_prerelease,
            "title": self.title,
            "description": self.description,
            "authors": self.authors,
            "license_url": self.license_url,
            "project_url": self.project_url,
            "repository_url": self.repository_url,
            "download_url": self.download_url,
            "download_count": self.download_count,
            "dependencies": [
                {
                    "target_framework": group.target_framework,
                    "dependencies": [{"id": d.id, "version": d.version} for d in group.dependencies],
                }
                for group in self.dependencies
            ],
            "source": getattr(source, "name", None),
        }
