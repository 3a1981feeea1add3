"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    USAGE_ERROR = 64


class SourceKind(Enum):
    """Package source strategies supported by the program.

    Args:
        Enum (string): Package source strategies supported by the program.
    """

    LOCAL = "local"
    V2 = "v2"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    NUPKG_EXTENSION = ".nupkg"
    NUSPEC_EXTENSION = ".nuspec"
    NUGET_CONFIG_FILE = "NuGet.config"
    REMOTE_SCHEMES = ("http://", "https://")

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "PKGFEED_LOG_LEVEL"
    ENV_CONFIG_DIR = "PKGFEED_CONFIG_DIR"

    CATALOG_REQUEST_TIMEOUT = 10  # seconds, catalog queries
    DOWNLOAD_TIMEOUT = None  # archive downloads are unconstrained
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    # OData v2 feed query shapes
    UPDATE_BATCH_SIZE = 10  # bounds query-string length for GetUpdates()
    RANGE_QUERY_TOP = 1000  # servers default to 100 entries per page
    DEFAULT_PAGE_SIZE = 15
