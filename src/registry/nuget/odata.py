"""NuGet V2 (OData Atom feed) response parser.

See http://www.odata.org/documentation/odata-version-2-0/ for the feed
format. Only the fields the package record carries are extracted.
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections import OrderedDict
from typing import Any, List, Optional

from registry.errors import CatalogParseError
from registry.package import DependencyGroup, Package, PackageIdentifier
from versioning import InvalidVersionError

logger = logging.getLogger(__name__)

ATOM_NS = "http://www.w3.org/2005/Atom"
DATA_NS = "http://schemas.microsoft.com/ado/2007/08/dataservices"
METADATA_NS = "http://schemas.microsoft.com/ado/2007/08/dataservices/metadata"


def _atom(tag: str) -> str:
    return f"{{{ATOM_NS}}}{tag}"


def _prop(props: Optional[ET.Element], name: str) -> Optional[str]:
    if props is None:
        return None
    elem = props.find(f"{{{DATA_NS}}}{name}")
    if elem is None or elem.text is None:
        return None
    return elem.text.strip()


def parse_dependencies(raw: Optional[str]) -> List[DependencyGroup]:
    """Parse the ``id:version:framework|...`` dependency string of a feed entry."""
    if not raw:
        return []

    groups: "OrderedDict[str, DependencyGroup]" = OrderedDict()
    for item in raw.split("|"):
        parts = item.split(":")
        dep_id = parts[0].strip()
        if not dep_id:
            continue
        version = parts[1].strip() if len(parts) > 1 else ""
        framework = parts[2].strip() if len(parts) > 2 else ""
        try:
            dependency = PackageIdentifier(dep_id, version)
        except InvalidVersionError:
            logger.warning("Ignoring dependency %s with invalid version '%s'", dep_id, version)
            continue
        group = groups.setdefault(framework, DependencyGroup(target_framework=framework))
        group.dependencies.append(dependency)
    return list(groups.values())


def _parse_entry(entry: ET.Element, source: Any) -> Package:
    props = entry.find(f"{{{METADATA_NS}}}properties")
    title_elem = entry.find(_atom("title"))
    title_text = title_elem.text.strip() if title_elem is not None and title_elem.text else None

    package_id = _prop(props, "Id") or title_text
    version = _prop(props, "Version")
    if not package_id or not version:
        raise CatalogParseError("Feed entry is missing Id or Version")

    authors = _prop(props, "Authors")
    if not authors:
        name_elem = entry.find(f"{_atom('author')}/{_atom('name')}")
        authors = name_elem.text.strip() if name_elem is not None and name_elem.text else None

    content = entry.find(_atom("content"))
    download_count = _prop(props, "DownloadCount")

    try:
        return Package(
            package_id,
            version,
            source=source,
            title=_prop(props, "Title") or title_text,
            description=_prop(props, "Description") or _prop(props, "Summary"),
            authors=authors,
            release_notes=_prop(props, "ReleaseNotes"),
            license_url=_prop(props, "LicenseUrl"),
            project_url=_prop(props, "ProjectUrl"),
            download_url=content.get("src") if content is not None else None,
            download_count=int(download_count) if download_count and download_count.isdigit() else 0,
            dependencies=parse_dependencies(_prop(props, "Dependencies")),
        )
    except InvalidVersionError as exc:
        raise CatalogParseError(f"Feed entry {package_id} has invalid version: {exc}") from exc


def parse_feed(document: bytes, source: Any = None) -> List[Package]:
    """Convert an OData feed (or single entry) document into packages bound to ``source``.

    Raises:
        CatalogParseError: when the document is not well-formed XML or an entry is unusable.
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise CatalogParseError(f"Malformed feed document: {exc}") from exc

    if root.tag == _atom("entry"):
        entries = [root]
    else:
        entries = root.findall(_atom("entry"))
    return [_parse_entry(entry, source) for entry in entries]
