"""Parsing utilities for NuGet version strings and interval ranges."""

import re

from .models import PackageVersion, VersionRange

_IDENTIFIER = r"[0-9A-Za-z-]+"
_VERSION_RE = re.compile(
    r"^(?P<release>\d+(?:\.\d+){0,3})"
    rf"(?:-(?P<prerelease>{_IDENTIFIER}(?:\.{_IDENTIFIER})*))?"
    rf"(?:\+(?P<metadata>{_IDENTIFIER}(?:\.{_IDENTIFIER})*))?$"
)


class InvalidVersionError(ValueError):
    """Raised for text that is neither a version nor a version range."""


def is_range_expression(text: str) -> bool:
    """Return True when ``text`` uses interval syntax, e.g. ``[1.0,2.0)``."""
    return bool(text) and text.strip()[:1] in ("[", "(")


def _normalize_label(identifier: str) -> str:
    # Labels compare case-insensitively; numeric identifiers lose leading zeros.
    if identifier.isdigit():
        return str(int(identifier))
    return identifier.lower()


def parse_version(text: str) -> PackageVersion:
    """Parse a single version such as ``1.2``, ``1.2.3.4`` or ``2.0.0-beta.1+sha``."""
    if text is None:
        raise InvalidVersionError("Version is missing")
    stripped = text.strip()
    match = _VERSION_RE.match(stripped)
    if not match:
        raise InvalidVersionError(f"Invalid version '{text}'")

    release = tuple(int(part) for part in match.group("release").split("."))
    prerelease = match.group("prerelease")
    labels = tuple(_normalize_label(p) for p in prerelease.split(".")) if prerelease else ()
    return PackageVersion(
        release=release,
        prerelease=labels,
        metadata=match.group("metadata") or "",
        original=stripped,
    )


def parse_range(text: str) -> VersionRange:
    """Parse a NuGet version range.

    A bare version is a minimum-inclusive range with no maximum; ``[1.0]``
    matches exactly 1.0; otherwise ``(``/``[`` lower ``,`` upper ``)``/``]``
    where either bound may be omitted.
    """
    if text is None or not text.strip():
        raise InvalidVersionError("Version range is empty")
    stripped = text.strip()

    if not is_range_expression(stripped):
        return VersionRange(minimum=parse_version(stripped), include_minimum=True, original=stripped)

    if len(stripped) < 3 or stripped[-1] not in (")", "]"):
        raise InvalidVersionError(f"Invalid version range '{text}'")

    include_minimum = stripped[0] == "["
    include_maximum = stripped[-1] == "]"
    inner = stripped[1:-1]

    if "," not in inner:
        if not (include_minimum and include_maximum):
            raise InvalidVersionError(f"Invalid exact version range '{text}'")
        exact = parse_version(inner)
        return VersionRange(exact, exact, True, True, original=stripped)

    lower_text, upper_text = inner.split(",", 1)
    if "," in upper_text:
        raise InvalidVersionError(f"Invalid version range '{text}'")

    minimum = parse_version(lower_text) if lower_text.strip() else None
    maximum = parse_version(upper_text) if upper_text.strip() else None
    if minimum is None and maximum is None:
        raise InvalidVersionError(f"Version range '{text}' has no bounds")
    if minimum is not None and maximum is not None and maximum < minimum:
        raise InvalidVersionError(f"Version range '{text}' has maximum below minimum")

    return VersionRange(minimum, maximum, include_minimum, include_maximum, original=stripped)
