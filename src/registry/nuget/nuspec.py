"""NuGet archive reader: build package records from the .nuspec inside a .nupkg."""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
import zipfile
from typing import Any, List, Optional

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from registry.errors import CatalogParseError
from registry.package import DependencyGroup, Package, PackageIdentifier
from versioning import InvalidVersionError

logger = logging.getLogger(__name__)


def _strip_namespaces(root: ET.Element) -> None:
    # nuspec schema namespaces vary between NuGet releases
    for elem in root.iter():
        if "}" in elem.tag:
            elem.tag = elem.tag.split("}", 1)[1]


def _text(parent: ET.Element, tag: str) -> Optional[str]:
    elem = parent.find(tag)
    if elem is None or elem.text is None:
        return None
    return elem.text.strip()


def _parse_dependency(elem: ET.Element) -> Optional[PackageIdentifier]:
    dep_id = elem.get("id")
    if not dep_id:
        return None
    try:
        return PackageIdentifier(dep_id, elem.get("version"))
    except InvalidVersionError:
        logger.warning("Ignoring dependency %s with invalid version '%s'", dep_id, elem.get("version"))
        return None


def _parse_dependency_groups(metadata: ET.Element) -> List[DependencyGroup]:
    dependencies = metadata.find("dependencies")
    if dependencies is None:
        return []

    groups: List[DependencyGroup] = []
    for group in dependencies.findall("group"):
        deps = [d for d in (_parse_dependency(e) for e in group.findall("dependency")) if d is not None]
        groups.append(DependencyGroup(target_framework=group.get("targetFramework", ""), dependencies=deps))

    # Pre-2.0 nuspec files list dependencies without framework groups
    flat = [d for d in (_parse_dependency(e) for e in dependencies.findall("dependency")) if d is not None]
    if flat:
        groups.append(DependencyGroup(target_framework="", dependencies=flat))
    return groups


def parse_nuspec(document: bytes, source: Any = None, download_url: Optional[str] = None) -> Package:
    """Build a Package from raw .nuspec XML.

    Raises:
        CatalogParseError: when the XML is malformed or lacks id/version.
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise CatalogParseError(f"Malformed nuspec: {exc}") from exc
    _strip_namespaces(root)

    metadata = root.find("metadata")
    if metadata is None:
        raise CatalogParseError("nuspec has no <metadata> element")

    package_id = _text(metadata, "id")
    version = _text(metadata, "version")
    if not package_id or not version:
        raise CatalogParseError("nuspec is missing <id> or <version>")

    repository = metadata.find("repository")
    try:
        return Package(
            package_id,
            version,
            source=source,
            title=_text(metadata, "title"),
            description=_text(metadata, "description"),
            authors=_text(metadata, "authors"),
            release_notes=_text(metadata, "releaseNotes"),
            license_url=_text(metadata, "licenseUrl"),
            project_url=_text(metadata, "projectUrl"),
            repository_url=repository.get("url") if repository is not None else None,
            download_url=download_url,
            dependencies=_parse_dependency_groups(metadata),
        )
    except InvalidVersionError as exc:
        raise CatalogParseError(f"nuspec for {package_id} has invalid version: {exc}") from exc


def read_nupkg(path: str, source: Any = None) -> Package:
    """Read the package record from the .nuspec at the root of a .nupkg archive.

    Raises:
        CatalogParseError: when the archive is corrupt or has no usable nuspec.
    """
    if is_debug_enabled(logger):
        logger.debug("Reading package archive", extra=extra_context(
            event="function_entry", component="nuspec", action="read_nupkg", target=path
        ))
    try:
        with zipfile.ZipFile(path, "r") as archive:
            nuspec_names = [
                name for name in archive.namelist()
                if "/" not in name and name.lower().endswith(Constants.NUSPEC_EXTENSION)
            ]
            if not nuspec_names:
                raise CatalogParseError(f"No .nuspec found in {path}")
            document = archive.read(nuspec_names[0])
    except zipfile.BadZipFile as exc:
        raise CatalogParseError(f"Corrupt package archive {path}: {exc}") from exc

    return parse_nuspec(document, source=source, download_url=path)
