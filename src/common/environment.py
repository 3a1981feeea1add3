"""Environment variable expansion for saved source paths and passwords."""
from __future__ import annotations

import os
import re
from typing import Optional

_WINDOWS_VAR = re.compile(r"%([^%\s]+)%")


def expand_environment_variables(value: Optional[str]) -> Optional[str]:
    """Expand ``%NAME%``, ``$NAME`` and ``${NAME}`` placeholders.

    Unknown variables are left untouched. Evaluated on every call so a
    long-lived process sees environment changes.
    """
    if value is None:
        return None

    def _replace(match: "re.Match[str]") -> str:
        return os.environ.get(match.group(1), match.group(0))

    expanded = _WINDOWS_VAR.sub(_replace, value)
    return os.path.expandvars(expanded)
