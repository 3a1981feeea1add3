"""Argument parsing functionality for pkgfeed."""

import argparse
from constants import Constants


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="pkgfeed",
        description=(
            "pkgfeed - Query NuGet package folders and V2 feeds through one interface"
        ),
        add_help=True,
    )

    parser.add_argument("-s", "--source",
                        dest="SOURCES",
                        help="Package source: a folder of .nupkg files or a V2 feed URL (repeatable)",
                        action="append", type=str,
                        default=[])
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help=f"Load package sources from a {Constants.NUGET_CONFIG_FILE} file",
                        action="store", type=str)
    parser.add_argument("--username",
                        dest="USERNAME",
                        help="User name for feeds given with --source",
                        action="store", type=str)
    parser.add_argument("--password",
                        dest="PASSWORD",
                        help="Password for feeds given with --source; %%VAR%% and $VAR are expanded",
                        action="store", type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help=f"Set the logging level (default: ${Constants.ENV_LOG_LEVEL} or WARNING)",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default=None)

    commands = parser.add_subparsers(dest="COMMAND", required=True)

    find = commands.add_parser("find", help="List versions of a package id, optionally within a version or range")
    find.add_argument("PACKAGE_ID", help="Package id")
    find.add_argument("VERSION", nargs="?", default=None,
                      help="Exact version or range such as [1.0,2.0)")

    search = commands.add_parser("search", help="Search packages by term")
    search.add_argument("TERM", nargs="?", default="", help="Search term")
    search.add_argument("--all-versions", dest="ALL_VERSIONS", action="store_true",
                        help="Include older versions, not only the latest")
    search.add_argument("--prerelease", dest="PRERELEASE", action="store_true",
                        help="Include prerelease packages")
    search.add_argument("--take", dest="TAKE", type=int, default=Constants.DEFAULT_PAGE_SIZE,
                        help="Number of results per page")
    search.add_argument("--skip", dest="SKIP", type=int, default=0,
                        help="Number of results to skip")

    updates = commands.add_parser("updates", help="List available updates for installed packages")
    updates.add_argument("INSTALLED", nargs="+", help="Installed packages as ID@VERSION")
    updates.add_argument("--all-versions", dest="ALL_VERSIONS", action="store_true",
                         help="Report every newer version, not only the best one")
    updates.add_argument("--prerelease", dest="PRERELEASE", action="store_true",
                         help="Include prerelease packages")

    download = commands.add_parser("download", help="Download a package archive")
    download.add_argument("PACKAGE_ID", help="Package id")
    download.add_argument("VERSION", help="Exact package version")
    download.add_argument("OUTPUT", help="Destination file")
    download.add_argument("--url", dest="URL_HINT", default=None,
                          help="Download location, overriding the one the source reports")

    return parser.parse_args(argv)
