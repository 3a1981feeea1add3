"""pkgfeed: command line front end for NuGet package sources."""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import List, Optional

from args import parse_args
from common.http_client import TransportError
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import ExitCodes
from registry import PackageIdentifier, PackageSource, create_source
from registry.nuget import load_sources
from registry.package import Package
from versioning import InvalidVersionError

logger = logging.getLogger(__name__)


def build_sources(args) -> List[PackageSource]:
    """Collect enabled sources from --config and --source arguments."""
    sources: List[PackageSource] = []
    if args.CONFIG:
        sources.extend(load_sources(args.CONFIG))
    for path in args.SOURCES:
        sources.append(create_source(path, path, user_name=args.USERNAME, password=args.PASSWORD))
    return [source for source in sources if source.is_enabled]


def parse_installed(token: str) -> PackageIdentifier:
    """Parse an ``ID@VERSION`` token using the rightmost '@'."""
    if "@" not in token:
        raise InvalidVersionError(f"Expected ID@VERSION, got '{token}'")
    package_id, version = token.rsplit("@", 1)
    if not package_id.strip() or not version.strip():
        raise InvalidVersionError(f"Expected ID@VERSION, got '{token}'")
    return PackageIdentifier(package_id.strip(), version.strip())


def print_packages(packages: List[Package]) -> None:
    for package in packages:
        print(json.dumps(package.to_dict()))


async def _search_all(sources: List[PackageSource], args) -> List[Package]:
    results = await asyncio.gather(*(
        source.search(args.TERM, args.ALL_VERSIONS, args.PRERELEASE, args.TAKE, args.SKIP)
        for source in sources
    ))
    return [package for packages in results for package in packages]


def run_command(args, sources: List[PackageSource]) -> int:
    """Execute the selected subcommand against ``sources``."""
    if args.COMMAND == "find":
        identifier = PackageIdentifier(args.PACKAGE_ID, args.VERSION)
        found: List[Package] = []
        for source in sources:
            found.extend(source.find_packages_by_id(identifier))
        found.sort()
        print_packages(found)
        return ExitCodes.SUCCESS.value

    if args.COMMAND == "search":
        print_packages(asyncio.run(_search_all(sources, args)))
        return ExitCodes.SUCCESS.value

    if args.COMMAND == "updates":
        installed = [parse_installed(token) for token in args.INSTALLED]
        updates: List[Package] = []
        for source in sources:
            updates.extend(source.get_updates(installed, args.PRERELEASE, args.ALL_VERSIONS))
        updates.sort()
        print_packages(updates)
        return ExitCodes.SUCCESS.value

    # download
    identifier = PackageIdentifier(args.PACKAGE_ID, args.VERSION)
    for source in sources:
        package = source.get_specific_package(identifier)
        if package is None:
            continue
        try:
            source.download_nupkg_to_file(package, args.OUTPUT, args.URL_HINT or package.download_url)
        except TransportError as exc:
            logger.error("Download of %s from %s failed: %s", identifier, source.name, exc)
            return ExitCodes.CONNECTION_ERROR.value
        except OSError as exc:
            logger.error("Couldn't write %s: %s", args.OUTPUT, exc)
            return ExitCodes.FILE_ERROR.value
        logger.info("Package %s downloaded from %s", package, source.name)
        return ExitCodes.SUCCESS.value

    logger.error("Package %s was not found in any source", identifier)
    return ExitCodes.FILE_ERROR.value


def main(argv: Optional[List[str]] = None) -> int:
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main", command=args.COMMAND)
        )

    sources = build_sources(args)
    if not sources:
        logger.error("No enabled package sources; use --source or --config.")
        return ExitCodes.USAGE_ERROR.value

    try:
        return run_command(args, sources)
    except InvalidVersionError as exc:
        logger.error("%s", exc)
        return ExitCodes.USAGE_ERROR.value


if __name__ == "__main__":
    sys.exit(main())
