from __future__ import annotations

from .facade import Storage

__all__ = ["Storage"]
