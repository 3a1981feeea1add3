"""Package source backed by .nupkg archives on a local or network drive."""
from __future__ import annotations

import fnmatch
import logging
import os
import shutil
from typing import Dict, Iterable, List, Optional

from common.logging_utils import extra_context, is_debug_enabled, Timer
from constants import Constants
from registry.errors import CatalogParseError
from registry.package import Package, PackageIdentifier
from registry.source import (
    CancellationToken,
    SourceConfig,
    default_base_directory,
    require_exact_version,
    run_cancellable,
)

from .nuspec import read_nupkg

logger = logging.getLogger(__name__)


def _matching_entries(directory: str, pattern: str, want_dirs: bool) -> List[str]:
    """List entries of ``directory`` whose names match ``pattern``, ignoring case."""
    pattern = pattern.casefold()
    matches = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.is_dir() != want_dirs:
                continue
            if fnmatch.fnmatchcase(entry.name.casefold(), pattern):
                matches.append(entry.path)
    return sorted(matches)


def _resolve_case_insensitive(directory: str, *parts: str) -> str:
    """Join ``parts`` onto ``directory``, following existing entries whose names differ only in case."""
    current = directory
    for part in parts:
        candidate = os.path.join(current, part)
        if not os.path.exists(candidate) and os.path.isdir(current):
            folded = part.casefold()
            for name in os.listdir(current):
                if name.casefold() == folded:
                    candidate = os.path.join(current, name)
                    break
        current = candidate
    return current


class LocalPackageSource:
    """Package source that resolves packages from a folder of .nupkg files.

    Both the flat layout (``<root>/<id>.<version>.nupkg``) and the
    hierarchical layout supported since NuGet 3.3
    (``<root>/<id>/<version>/<id>.<version>.nupkg``) are recognized.
    """

    def __init__(self, config: SourceConfig, base_directory: Optional[str] = None):
        """Initialize the local source.

        Args:
            config: Saved source configuration; ``saved_path`` is the folder.
            base_directory: Directory relative paths resolve against; defaults
                to ``PKGFEED_CONFIG_DIR`` or the working directory.
        """
        self.config = config
        self.base_directory = base_directory

    @property
    def name(self) -> str:
        return self.config.name

    @name.setter
    def name(self, value: str) -> None:
        self.config.name = value

    @property
    def saved_path(self) -> str:
        return self.config.saved_path

    @saved_path.setter
    def saved_path(self, value: str) -> None:
        self.config.saved_path = value

    @property
    def is_enabled(self) -> bool:
        return self.config.is_enabled

    @is_enabled.setter
    def is_enabled(self, value: bool) -> None:
        self.config.is_enabled = value

    @property
    def is_local_path(self) -> bool:
        return True

    # local sources don't have credentials
    @property
    def user_name(self) -> Optional[str]:
        return None

    @property
    def saved_password(self) -> Optional[str]:
        return None

    @property
    def has_password(self) -> bool:
        return False

    @property
    def expanded_path(self) -> str:
        """Folder path with environment variables expanded, made absolute."""
        path = self.config.expanded_path
        if not os.path.isabs(path):
            path = os.path.join(self.base_directory or default_base_directory(), path)
        return path

    def find_packages_by_id(self, package: PackageIdentifier) -> List[Package]:
        """Return packages with ``package.id`` whose version lies in the requested range, newest first."""
        if not package.has_version_range and package.version:
            root = self.expanded_path
            if not os.path.isdir(root):
                logger.error("Local folder not found: %s", root)
                return []
            found: List[Package] = []
            local_package_path = self.get_nupkg_file_path(package)
            if os.path.isfile(local_package_path):
                local_package = self._read_package(local_package_path)
                if local_package is not None:
                    found.append(local_package)
        else:
            # TODO: read only file names here instead of opening every matching archive
            found = self._local_packages(f"{package.id}*", include_all_versions=True, include_prerelease=True)

        found = [p for p in found if package.matches_id(p.id) and package.in_range(p)]
        found.sort()
        return found

    def get_specific_package(self, package: PackageIdentifier) -> Optional[Package]:
        """Return the first package of ``find_packages_by_id``, or None."""
        found = self.find_packages_by_id(package)
        return found[0] if found else None

    async def search(
        self,
        search_term: str = "",
        include_all_versions: bool = False,
        include_prerelease: bool = False,
        number_to_get: int = Constants.DEFAULT_PAGE_SIZE,
        number_to_skip: int = 0,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Package]:
        """Search the folder for archives whose file name contains ``search_term``.

        The whole result is returned for the first page; any non-zero
        ``number_to_skip`` yields an empty list. ``number_to_get`` is ignored.
        """
        return await run_cancellable(
            lambda: self._local_packages(
                f"*{search_term}*", include_all_versions, include_prerelease, number_to_skip
            ),
            cancel_token,
        )

    def get_updates(
        self,
        packages: Iterable[PackageIdentifier],
        include_prerelease: bool = False,
        include_all_versions: bool = False,
        target_frameworks: str = "",
        version_constraints: str = "",
    ) -> List[Package]:
        """Return available packages strictly newer than each installed package."""
        root = self.expanded_path
        if not os.path.isdir(root):
            logger.error("Local folder not found: %s", root)
            return []

        updates: List[Package] = []
        for installed in packages:
            installed_version = require_exact_version(installed)
            available = self._local_packages(f"{installed.id}*", include_all_versions, include_prerelease)
            for candidate in available:
                if installed.matches_id(candidate.id) and candidate.package_version > installed_version:
                    updates.append(candidate)

        updates.sort()
        return updates

    def download_nupkg_to_file(
        self,
        package: PackageIdentifier,
        output_file_path: str,
        download_url_hint: Optional[str] = None,
    ) -> None:
        """Copy the package archive to ``output_file_path``, overwriting it."""
        if not download_url_hint:
            download_url_hint = self.get_nupkg_file_path(package)
        shutil.copyfile(download_url_hint, output_file_path)
        logger.info("Copied %s to %s", download_url_hint, output_file_path)

    def get_nupkg_file_path(self, package: PackageIdentifier) -> str:
        """Path of the archive for an exact version, flat layout first.

        Raises:
            UnsupportedRangeError: when ``package`` carries a version range.
        """
        require_exact_version(package)
        root = self.expanded_path
        file_name = f"{package.id}.{package.version}{Constants.NUPKG_EXTENSION}"

        local_package_path = _resolve_case_insensitive(root, file_name)
        if not os.path.isfile(local_package_path):
            # └─<packageID>
            #   └─<version>
            #     └─<packageID>.<version>.nupkg
            local_package_path = _resolve_case_insensitive(root, package.id, package.version, file_name)
        return local_package_path

    def _read_package(self, path: str) -> Optional[Package]:
        try:
            return read_nupkg(path, source=self)
        except (CatalogParseError, OSError) as exc:
            logger.error("Unable to read package archive %s: %s", path, exc)
            return None

    def _archive_paths(self, root: str, search_term: str) -> List[str]:
        package_paths = _matching_entries(root, f"{search_term}{Constants.NUPKG_EXTENSION}", want_dirs=False)

        nupkg_pattern = f"*{Constants.NUPKG_EXTENSION}"
        for name_folder in _matching_entries(root, search_term, want_dirs=True):
            for version_folder in _matching_entries(name_folder, "*", want_dirs=True):
                package_paths.extend(_matching_entries(version_folder, nupkg_pattern, want_dirs=False))
        return package_paths

    def _local_packages(
        self,
        search_term: str = "",
        include_all_versions: bool = False,
        include_prerelease: bool = False,
        number_to_skip: int = 0,
    ) -> List[Package]:
        """List packages in the folder matching a file-name wildcard.

        Without ``include_all_versions`` one package per id survives: the
        newest, carrying every version seen for that id.
        """
        if not search_term:
            search_term = "*"

        if number_to_skip != 0:
            # the whole list is returned for the first page
            return []

        root = self.expanded_path
        if not os.path.isdir(root):
            logger.error("Local folder not found: %s", root)
            return []

        with Timer() as t:
            local_packages: List[Package] = []
            latest_by_id: Dict[str, Package] = {}
            for package_path in self._archive_paths(root, search_term):
                package = self._read_package(package_path)
                if package is None:
                    continue

                if package.is_prerelease and not include_prerelease:
                    continue

                if include_all_versions:
                    local_packages.append(package)
                    continue

                key = package.id.casefold()
                existing = latest_by_id.get(key)
                if existing is None:
                    latest_by_id[key] = package
                elif package.package_version > existing.package_version:
                    package.add_versions(existing.versions)
                    latest_by_id[key] = package
                else:
                    existing.add_version(package.package_version)

            if not include_all_versions:
                local_packages = list(latest_by_id.values())

        if is_debug_enabled(logger):
            logger.debug("Local packages listed", extra=extra_context(
                event="function_exit", component="local_source", action="list_packages",
                target=root, count=len(local_packages), duration_ms=t.duration_ms()
            ))
        return local_packages
