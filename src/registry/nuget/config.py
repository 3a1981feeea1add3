"""NuGet.config loader: build package sources from packageSources sections."""
from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Tuple

from registry.source import PackageSource, create_source

logger = logging.getLogger(__name__)


def _decode_key(tag: str) -> str:
    # XML element names encode spaces in source names as _x0020_
    return tag.replace("_x0020_", " ")


def _adds(section: Optional[ET.Element]) -> List[Tuple[str, str]]:
    if section is None:
        return []
    return [
        (add.get("key", ""), add.get("value", ""))
        for add in section.findall("add")
        if add.get("key")
    ]


def _read_credentials(root: ET.Element) -> Dict[str, Tuple[Optional[str], Optional[str]]]:
    credentials: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
    section = root.find("packageSourceCredentials")
    if section is None:
        return credentials

    for source_elem in section:
        user_name: Optional[str] = None
        password: Optional[str] = None
        for key, value in _adds(source_elem):
            lowered = key.lower()
            if lowered == "username":
                user_name = value
            elif lowered == "cleartextpassword":
                password = value
            elif lowered == "password":
                logger.warning(
                    "Encrypted password for source %s is not supported; use ClearTextPassword",
                    _decode_key(source_elem.tag),
                )
        credentials[_decode_key(source_elem.tag).lower()] = (user_name, password)
    return credentials


def load_sources(config_path: str) -> List[PackageSource]:
    """Read package sources from a NuGet.config file.

    Relative local paths resolve against the config file's directory.
    Unreadable or malformed files yield an empty list and an error log.
    """
    try:
        tree = ET.parse(config_path)
    except (ET.ParseError, IOError) as e:
        logger.error("Couldn't read NuGet config file %s: %s", config_path, e)
        return []

    root = tree.getroot()
    base_directory = os.path.dirname(os.path.abspath(config_path))

    disabled = {
        key.lower()
        for key, value in _adds(root.find("disabledPackageSources"))
        if value.strip().lower() == "true"
    }
    credentials = _read_credentials(root)

    sources: List[PackageSource] = []
    for key, value in _adds(root.find("packageSources")):
        if not value:
            logger.warning("Package source %s has no path; skipping", key)
            continue
        user_name, password = credentials.get(key.lower(), (None, None))
        sources.append(create_source(
            key,
            value,
            user_name=user_name,
            password=password,
            is_enabled=key.lower() not in disabled,
            base_directory=base_directory,
        ))

    logger.debug("Loaded %d package source(s) from %s", len(sources), config_path)
    return sources
