"""
Root package of one_time_share.

Metadata only, no side-effect imports and no ENV reads.
"""
from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as _pkg_version

try:
    __version__: str = _pkg_version("one-time-share")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
