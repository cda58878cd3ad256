"""
DPF version utilities.

- __version__: base semantic version, overridable with env `DPF_VERSION`.
- version_info: (major, minor, patch) parsed from the base semver.
"""

from __future__ import annotations

import os
import re
from typing import Tuple

# Bump this when making a release of the dpf package.
_BASE_SEMVER = "0.1.0"

__version__ = os.environ.get("DPF_VERSION") or _BASE_SEMVER


def _parse_semver(v: str) -> Tuple[int, int, int]:
    m = re.match(r"^\s*v?(\d+)\.(\d+)\.(\d+)", v)
    if not m:
        return (0, 0, 0)
    return (int(m.group(1)), int(m.group(2)), int(m.group(3)))


version_info: Tuple[int, int, int] = _parse_semver(_BASE_SEMVER)


def get_version() -> str:
    """Return the dpf package version string."""
    return __version__
