"""Shared package source contract.

A caller holds one or more sources and talks to them only through the
``PackageSource`` protocol; which backend answered is invisible to it.
"""
from __future__ import annotations

import asyncio
import os
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Protocol, TypeVar, runtime_checkable

from common.environment import expand_environment_variables
from constants import Constants, SourceKind
from registry.errors import SearchCancelledError, UnsupportedRangeError
from registry.package import Package, PackageIdentifier
from versioning import PackageVersion

T = TypeVar("T")


@dataclass
class SourceConfig:
    """Saved configuration of a package source.

    Saved values may contain environment-variable placeholders; the expanded
    forms are recomputed on every access and never stored.
    """
    name: str
    saved_path: str
    is_enabled: bool = True
    user_name: Optional[str] = None
    saved_password: Optional[str] = None

    @property
    def expanded_path(self) -> str:
        return expand_environment_variables(self.saved_path) or ""

    @property
    def expanded_password(self) -> Optional[str]:
        return expand_environment_variables(self.saved_password)

    @property
    def has_password(self) -> bool:
        return self.saved_password is not None

    @property
    def is_remote(self) -> bool:
        return self.expanded_path.lower().startswith(Constants.REMOTE_SCHEMES)

    @property
    def kind(self) -> SourceKind:
        return SourceKind.V2 if self.is_remote else SourceKind.LOCAL


class CancellationToken:
    """Cooperative cancellation signal threaded through ``search`` calls."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation and notify registered callbacks once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation (immediately if already cancelled).

        Returns a function that removes the registration.
        """
        with self._lock:
            already_cancelled = self._event.is_set()
            if not already_cancelled:
                self._callbacks.append(callback)
        if already_cancelled:
            callback()
            return lambda: None

        def _unregister() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return _unregister

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SearchCancelledError("Search was cancelled")


@runtime_checkable
class PackageSource(Protocol):
    """Capability set every package source strategy provides."""

    name: str
    saved_path: str
    is_enabled: bool

    @property
    def is_local_path(self) -> bool: ...

    @property
    def user_name(self) -> Optional[str]: ...

    @property
    def saved_password(self) -> Optional[str]: ...

    @property
    def has_password(self) -> bool: ...

    def find_packages_by_id(self, package: PackageIdentifier) -> List[Package]: ...

    def get_specific_package(self, package: PackageIdentifier) -> Optional[Package]: ...

    async def search(
        self,
        search_term: str = "",
        include_all_versions: bool = False,
        include_prerelease: bool = False,
        number_to_get: int = Constants.DEFAULT_PAGE_SIZE,
        number_to_skip: int = 0,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Package]: ...

    def get_updates(
        self,
        packages: Iterable[PackageIdentifier],
        include_prerelease: bool = False,
        include_all_versions: bool = False,
        target_frameworks: str = "",
        version_constraints: str = "",
    ) -> List[Package]: ...

    def download_nupkg_to_file(
        self,
        package: PackageIdentifier,
        output_file_path: str,
        download_url_hint: Optional[str] = None,
    ) -> None: ...


def require_exact_version(package: PackageIdentifier) -> PackageVersion:
    """Return the exact version of ``package``.

    Raises:
        UnsupportedRangeError: when ``package`` carries a version range or no version.
    """
    if package.has_version_range or package.package_version is None:
        raise UnsupportedRangeError(
            f"The package '{package}' has a version range which is not supported for this function."
        )
    return package.package_version


async def run_cancellable(func: Callable[[], T], cancel_token: Optional[CancellationToken] = None) -> T:
    """Run blocking ``func`` in the default executor, honouring ``cancel_token``.

    Raises:
        SearchCancelledError: when the token fires before ``func`` returns.
    """
    loop = asyncio.get_running_loop()
    if cancel_token is None:
        return await loop.run_in_executor(None, func)

    cancel_token.raise_if_cancelled()
    work = loop.run_in_executor(None, func)
    cancelled = loop.create_future()

    def _resolve() -> None:
        if not cancelled.done():
            cancelled.set_result(None)

    unregister = cancel_token.register(lambda: loop.call_soon_threadsafe(_resolve))
    try:
        await asyncio.wait({work, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        unregister()
        if not cancelled.done():
            cancelled.cancel()

    if work.done():
        return work.result()

    # The executor thread cannot be interrupted; drop its outcome when it lands.
    work.add_done_callback(lambda f: f.cancelled() or f.exception())
    raise SearchCancelledError("Search was cancelled")


def default_base_directory() -> str:
    """Directory that relative local source paths are resolved against."""
    return os.environ.get(Constants.ENV_CONFIG_DIR) or os.getcwd()


def create_source(
    name: str,
    path: str,
    *,
    user_name: Optional[str] = None,
    password: Optional[str] = None,
    is_enabled: bool = True,
    base_directory: Optional[str] = None,
) -> PackageSource:
    """Build the source strategy matching ``path``: remote feed for http(s) URLs, local folder otherwise."""
    # pylint: disable=import-outside-toplevel
    from registry.nuget.local import LocalPackageSource
    from registry.nuget.v2 import V2PackageSource

    config = SourceConfig(
        name=name,
        saved_path=path,
        is_enabled=is_enabled,
        user_name=user_name,
        saved_password=password,
    )
    if config.kind is SourceKind.V2:
        return V2PackageSource(config)
    return LocalPackageSource(config, base_directory=base_directory)
