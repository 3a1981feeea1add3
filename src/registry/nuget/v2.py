"""Package source backed by a remote NuGet server speaking the V2 (OData) API."""
from __future__ import annotations

import contextlib
import logging
import os
from enum import Enum
from typing import BinaryIO, Callable, Iterable, List, Optional, Sequence

from common.http_client import TransportError, read_stream, request_url
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from constants import Constants
from registry.errors import CatalogParseError
from registry.package import Package, PackageIdentifier
from registry.source import CancellationToken, SourceConfig, require_exact_version, run_cancellable

from .odata import parse_feed

logger = logging.getLogger(__name__)

Transport = Callable[..., BinaryIO]
FeedParser = Callable[[bytes, object], List[Package]]


class UpdateProtocol(Enum):
    """How ``get_updates`` queries the server within a single call."""
    BATCHED = "batched"  # GetUpdates() endpoint, several ids per request
    FALLBACK = "fallback"  # FindPackagesById() per installed package


def _bool_param(value: bool) -> str:
    return "true" if value else "false"


class V2PackageSource:
    """Package source for a NuGet V2 feed such as ``https://www.nuget.org/api/v2/``.

    Query URLs follow http://www.odata.org/documentation/odata-version-2-0/uri-conventions/
    and the functions listed in the feed's ``$metadata`` document.
    """

    def __init__(
        self,
        config: SourceConfig,
        transport: Transport = request_url,
        parser: FeedParser = parse_feed,
    ):
        """Initialize the remote source.

        Args:
            config: Saved source configuration; ``saved_path`` is the feed URL.
            transport: Callable fetching a URL as a byte stream (see ``request_url``).
            parser: Callable turning a feed document into packages bound to this source.
        """
        self.config = config
        self._transport = transport
        self._parser = parser

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
        return False

    @property
    def user_name(self) -> Optional[str]:
        return self.config.user_name

    @user_name.setter
    def user_name(self, value: Optional[str]) -> None:
        self.config.user_name = value

    @property
    def saved_password(self) -> Optional[str]:
        return self.config.saved_password

    @saved_password.setter
    def saved_password(self, value: Optional[str]) -> None:
        self.config.saved_password = value or None

    @property
    def has_password(self) -> bool:
        return self.config.has_password

    @has_password.setter
    def has_password(self, value: bool) -> None:
        if value:
            if self.config.saved_password is None:
                self.config.saved_password = ""
        else:
            self.config.saved_password = None

    @property
    def expanded_path(self) -> str:
        """Feed URL with environment variables expanded, always ending in '/'."""
        path = self.config.expanded_path
        return path if path.endswith("/") else path + "/"

    @property
    def expanded_password(self) -> Optional[str]:
        return self.config.expanded_password

    def find_packages_by_id(self, package: PackageIdentifier) -> List[Package]:
        """Return packages with ``package.id`` whose version lies in the requested range, newest first."""
        url = f"{self.expanded_path}FindPackagesById()?id='{package.id}'"
        if not package.has_version_range and package.version:
            url = f"{url}&$filter=Version eq '{package.version}'"
        else:
            # Ranges are filtered client-side; fetch beyond the server's default page of 100.
            url = f"{url}&$top={Constants.RANGE_QUERY_TOP}"

        try:
            found = self._get_packages_from_url(url)
        except (TransportError, CatalogParseError) as exc:
            logger.error("Unable to retrieve package list from %s\n%s", safe_url(url), exc)
            found = []

        found = [p for p in found if package.matches_id(p.id) and package.in_range(p)]
        found.sort()
        return found

    def get_specific_package(self, package: PackageIdentifier) -> Optional[Package]:
        """Return the package for an exact version, or the first range match; None when absent."""
        if package.has_version_range or not package.version:
            found = self.find_packages_by_id(package)
            return found[0] if found else None

        url = f"{self.expanded_path}Packages(Id='{package.id}',Version='{package.version}')"
        try:
            found = self._get_packages_from_url(url)
        except (TransportError, CatalogParseError) as exc:
            logger.error("Unable to retrieve package from %s\n%s", safe_url(url), exc)
            return None
        return found[0] if found else None

    def build_search_url(
        self,
        search_term: str = "",
        include_all_versions: bool = False,
        include_prerelease: bool = False,
        number_to_get: int = Constants.DEFAULT_PAGE_SIZE,
        number_to_skip: int = 0,
    ) -> str:
        """Build the Search() query, e.g.
        ``Search()?$filter=IsLatestVersion&$orderby=DownloadCount desc&$skip=0&$top=15&searchTerm='json'&targetFramework=''&includePrerelease=false``.
        """
        url = f"{self.expanded_path}Search()?"
        if not include_all_versions:
            url += "$filter=IsAbsoluteLatestVersion&" if include_prerelease else "$filter=IsLatestVersion&"
        url += "$orderby=DownloadCount desc&"
        url += f"$skip={number_to_skip}&"
        url += f"$top={number_to_get}&"
        url += f"searchTerm='{search_term}'&"
        url += "targetFramework=''&"
        url += f"includePrerelease={_bool_param(include_prerelease)}"
        return url

    async def search(
        self,
        search_term: str = "",
        include_all_versions: bool = False,
        include_prerelease: bool = False,
        number_to_get: int = Constants.DEFAULT_PAGE_SIZE,
        number_to_skip: int = 0,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Package]:
        """Search the feed, most downloaded first. Failures yield an empty list.

        Raises:
            SearchCancelledError: when ``cancel_token`` fires before the server answers.
        """
        url = self.build_search_url(
            search_term, include_all_versions, include_prerelease, number_to_get, number_to_skip
        )

        def _fetch() -> List[Package]:
            try:
                return self._get_packages_from_url(url)
            except (TransportError, CatalogParseError) as exc:
                logger.error("Unable to retrieve package list from %s\n%s", safe_url(url), exc)
                return []

        return await run_cancellable(_fetch, cancel_token)

    def get_updates(
        self,
        packages: Iterable[PackageIdentifier],
        include_prerelease: bool = False,
        include_all_versions: bool = False,
        target_frameworks: str = "",
        version_constraints: str = "",
    ) -> List[Package]:
        """Return updates for the installed packages, sorted by id then newest version.

        Queries the GetUpdates() endpoint in batches. Servers without that
        endpoint (HTTP 404, e.g. Azure DevOps feeds) switch the rest of the
        call to per-package FindPackagesById() queries.
        """
        installed = list(packages)
        for package in installed:
            require_exact_version(package)

        protocol = UpdateProtocol.BATCHED
        updates: List[Package] = []
        for start in range(0, len(installed), Constants.UPDATE_BATCH_SIZE):
            batch = installed[start:start + Constants.UPDATE_BATCH_SIZE]
            url = self._build_updates_url(
                batch, include_prerelease, include_all_versions, target_frameworks, version_constraints
            )
            try:
                updates.extend(self._get_packages_from_url(url))
            except TransportError as exc:
                if exc.is_not_found:
                    logger.debug("%s not found. Falling back to FindPackagesById.", safe_url(url))
                    protocol = UpdateProtocol.FALLBACK
                    break
                logger.error("Unable to retrieve package list from %s\n%s", safe_url(url), exc)
            except CatalogParseError as exc:
                logger.error("Unable to retrieve package list from %s\n%s", safe_url(url), exc)

        if protocol is UpdateProtocol.FALLBACK:
            updates = self.get_updates_fallback(
                installed, include_prerelease, include_all_versions, target_frameworks, version_constraints
            )

        # sort alphabetically, then by version descending
        updates.sort()
        return updates

    def get_updates_fallback(
        self,
        installed_packages: Sequence[PackageIdentifier],
        include_prerelease: bool = False,
        include_all_versions: bool = False,
        target_frameworks: str = "",
        version_constraints: str = "",
    ) -> List[Package]:
        """Find updates through FindPackagesById() for feeds lacking GetUpdates()."""
        if target_frameworks or version_constraints:
            logger.warning(
                "Target frameworks and version constraints are ignored when %s lacks GetUpdates()",
                self.name,
            )

        updates: List[Package] = []
        with Timer() as t:
            for installed in installed_packages:
                installed_version = require_exact_version(installed)
                # current version (exclusive) with no maximum
                newer = PackageIdentifier(installed.id, f"({installed_version.original},)")
                package_updates = self.find_packages_by_id(newer)

                if not include_prerelease:
                    package_updates = [p for p in package_updates if not p.is_prerelease]

                if not package_updates:
                    continue

                if include_all_versions:
                    updates.extend(package_updates)
                else:
                    updates.append(max(package_updates, key=lambda p: p.package_version))

        logger.debug("GetUpdates fallback for %s took %s ms", self.name, t.duration_ms())
        return updates

    def download_nupkg_to_file(
        self,
        package: PackageIdentifier,
        output_file_path: str,
        download_url_hint: Optional[str] = None,
    ) -> None:
        """Stream the package archive from ``download_url_hint`` into ``output_file_path``.

        Without a hint the feed's ``package/<id>/<version>`` download route is used.

        Raises:
            TransportError: when the archive cannot be fetched; a partially
                written output file is removed.
        """
        url = download_url_hint
        if not url:
            require_exact_version(package)
            url = f"{self.expanded_path}package/{package.id}/{package.version}"

        with self._transport(
            url, self.user_name, self.expanded_password, Constants.DOWNLOAD_TIMEOUT
        ) as response_stream:
            with open(output_file_path, "wb") as file_stream:
                try:
                    while True:
                        chunk = read_stream(url, response_stream, Constants.DOWNLOAD_CHUNK_SIZE)
                        if not chunk:
                            break
                        file_stream.write(chunk)
                except (TransportError, OSError):
                    # never leave a truncated archive behind
                    file_stream.close()
                    with contextlib.suppress(OSError):
                        os.remove(output_file_path)
                    raise
        logger.info("Downloaded %s to %s", safe_url(url), output_file_path)

    def _build_updates_url(
        self,
        batch: Sequence[PackageIdentifier],
        include_prerelease: bool,
        include_all_versions: bool,
        target_frameworks: str,
        version_constraints: str,
    ) -> str:
        package_ids = "|".join(p.id for p in batch)
        versions = "|".join(p.version for p in batch)
        return (
            f"{self.expanded_path}GetUpdates()?packageIds='{package_ids}'&versions='{versions}'"
            f"&includePrerelease={_bool_param(include_prerelease)}"
            f"&includeAllVersions={_bool_param(include_all_versions)}"
            f"&targetFrameworks='{target_frameworks}'&versionConstraints='{version_constraints}'"
        )

    def _get_packages_from_url(self, url: str) -> List[Package]:
        """Fetch ``url`` and parse the OData Atom feed it returns.

        Raises:
            TransportError: when the request fails.
            CatalogParseError: when the response is not a usable feed.
        """
        if is_debug_enabled(logger):
            logger.debug("Getting packages", extra=extra_context(
                event="http_request", component="v2_source", action="GET", target=safe_url(url)
            ))

        with Timer() as t:
            with self._transport(
                url, self.user_name, self.expanded_password, Constants.CATALOG_REQUEST_TIMEOUT
            ) as response_stream:
                document = read_stream(url, response_stream)
            packages = self._parser(document, self)

        if is_debug_enabled(logger):
            logger.debug("Received packages", extra=extra_context(
                event="http_response", component="v2_source", action="GET", outcome="success",
                target=safe_url(url), count=len(packages), duration_ms=t.duration_ms()
            ))
        return packages
