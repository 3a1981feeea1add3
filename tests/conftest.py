"""Shared fixtures: .nupkg archive builders and an in-memory V2 feed."""

import io
import os
import re
import zipfile
from typing import Callable, Dict, List, Optional

import pytest

from common.http_client import TransportError
from registry.nuget.local import LocalPackageSource
from registry.nuget.v2 import V2PackageSource
from registry.source import SourceConfig
from versioning import parse_version

FEED_URL = "https://feed.example.test/api/v2/"

NUSPEC_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<package xmlns="http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd">
  <metadata>
    <id>{id}</id>
    <version>{version}</version>
    <title>{id} title</title>
    <authors>Test Author</authors>
    <description>{id} test package</description>
    {extra}
  </metadata>
</package>"""

FEED_HEADER = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<feed xml:base="https://feed.example.test/api/v2" xmlns="http://www.w3.org/2005/Atom" '
    'xmlns:d="http://schemas.microsoft.com/ado/2007/08/dataservices" '
    'xmlns:m="http://schemas.microsoft.com/ado/2007/08/dataservices/metadata">'
)


def build_nupkg(path: str, package_id: str, version: str, extra: str = "") -> str:
    """Write a minimal .nupkg archive with a root-level nuspec."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr(f"{package_id}.nuspec", NUSPEC_TEMPLATE.format(id=package_id, version=version, extra=extra))
        archive.writestr("lib/net45/placeholder.txt", "content")
    return path


def entry_xml(package_id: str, version: str, dependencies: str = "", download_count: int = 42) -> str:
    return (
        "<entry>"
        f"<id>{FEED_URL}Packages(Id='{package_id}',Version='{version}')</id>"
        f'<title type="text">{package_id}</title>'
        "<author><name>Feed Author</name></author>"
        f'<content type="application/zip" src="{FEED_URL}package/{package_id}/{version}" />'
        "<m:properties>"
        f"<d:Version>{version}</d:Version>"
        f"<d:Description>{package_id} from the feed</d:Description>"
        f"<d:Dependencies>{dependencies}</d:Dependencies>"
        f'<d:DownloadCount m:type="Edm.Int32">{download_count}</d:DownloadCount>'
        "</m:properties>"
        "</entry>"
    )


def feed_xml(entries: List[str]) -> bytes:
    return (FEED_HEADER + "".join(entries) + "</feed>").encode("utf-8")


class FakeTransport:
    """Transport double: routes URLs through ``handler`` and records every call."""

    def __init__(self, handler: Callable[[str], object]):
        self.handler = handler
        self.calls: List[tuple] = []

    @property
    def urls(self) -> List[str]:
        return [call[0] for call in self.calls]

    def __call__(self, url, username=None, password=None, timeout=None):
        self.calls.append((url, username, password, timeout))
        result = self.handler(url)
        if isinstance(result, Exception):
            raise result
        if hasattr(result, "read"):
            return result
        return io.BytesIO(result)


class BrokenStream(io.BytesIO):
    """Response body that serves ``head`` in sized reads, then raises ``error``."""

    def __init__(self, error: Exception, head: bytes = b"PK\x03\x04"):
        super().__init__(head)
        self.error = error
        self.served = False

    def read(self, size=-1):
        if size is None or size < 0 or self.served:
            raise self.error
        self.served = True
        return super().read(size)


class FakeFeedServer:
    """Answers the V2 query shapes from an in-memory catalog of id -> versions."""

    def __init__(self, catalog: Dict[str, List[str]], supports_get_updates: bool = True):
        self.catalog = catalog
        self.supports_get_updates = supports_get_updates

    def _lookup(self, package_id: str) -> List[str]:
        for key, versions in self.catalog.items():
            if key.lower() == package_id.lower():
                return versions
        return []

    def _canonical_id(self, package_id: str) -> str:
        for key in self.catalog:
            if key.lower() == package_id.lower():
                return key
        return package_id

    def __call__(self, url: str):
        if "GetUpdates()" in url:
            if not self.supports_get_updates:
                return TransportError(url, "Not Found", status=404)
            return self._get_updates(url)

        match = re.search(r"FindPackagesById\(\)\?id='([^']*)'", url)
        if match:
            package_id = match.group(1)
            versions = self._lookup(package_id)
            exact = re.search(r"\$filter=Version eq '([^']*)'", url)
            if exact:
                versions = [v for v in versions if v == exact.group(1)]
            canonical = self._canonical_id(package_id)
            return feed_xml([entry_xml(canonical, v) for v in versions])

        match = re.search(r"Packages\(Id='([^']*)',Version='([^']*)'\)", url)
        if match:
            package_id, version = match.groups()
            if version not in self._lookup(package_id):
                return TransportError(url, "Not Found", status=404)
            return feed_xml([entry_xml(self._canonical_id(package_id), version)])

        return TransportError(url, "Not Found", status=404)

    def _get_updates(self, url: str) -> bytes:
        ids = re.search(r"packageIds='([^']*)'", url).group(1).split("|")
        installed = re.search(r"versions='([^']*)'", url).group(1).split("|")
        include_prerelease = "includePrerelease=true" in url
        include_all = "includeAllVersions=true" in url

        entries = []
        for package_id, current in zip(ids, installed):
            newer = [
                v for v in self._lookup(package_id)
                if parse_version(v) > parse_version(current)
                and (include_prerelease or not parse_version(v).is_prerelease)
            ]
            if not newer:
                continue
            if not include_all:
                newer = [max(newer, key=parse_version)]
            entries.extend(entry_xml(self._canonical_id(package_id), v) for v in newer)
        return feed_xml(entries)


@pytest.fixture
def package_dir(tmp_path):
    """Root folder for local package sources."""
    root = tmp_path / "packages"
    root.mkdir()
    return root


@pytest.fixture
def make_nupkg(package_dir):
    """Factory writing archives into ``package_dir`` in flat or hierarchical layout."""
    def _make(package_id: str, version: str, hierarchical: bool = False, extra: str = "") -> str:
        file_name = f"{package_id}.{version}.nupkg"
        if hierarchical:
            path = package_dir / package_id / version / file_name
        else:
            path = package_dir / file_name
        return build_nupkg(str(path), package_id, version, extra)
    return _make


@pytest.fixture
def local_source(package_dir):
    return LocalPackageSource(SourceConfig(name="local", saved_path=str(package_dir)))


@pytest.fixture
def make_v2_source():
    """Factory for a V2 source wired to a FakeTransport."""
    def _make(handler, user_name: Optional[str] = None, password: Optional[str] = None):
        transport = FakeTransport(handler)
        config = SourceConfig(name="feed", saved_path=FEED_URL, user_name=user_name, saved_password=password)
        return V2PackageSource(config, transport=transport), transport
    return _make


@pytest.fixture
def write_nupkg():
    """The ``build_nupkg`` helper, for archives outside ``package_dir``."""
    return build_nupkg


@pytest.fixture
def feed_server():
    """The ``FakeFeedServer`` class, for building in-memory V2 feeds."""
    return FakeFeedServer


@pytest.fixture
def feed_of():
    """Build a feed document from ``(id, version)`` pairs."""
    def _feed(*pairs) -> bytes:
        return feed_xml([entry_xml(package_id, version) for package_id, version in pairs])
    return _feed


@pytest.fixture
def broken_stream():
    """The ``BrokenStream`` class, for bodies that fail mid-read."""
    return BrokenStream
