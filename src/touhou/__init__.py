from __future__ import annotations

__all__ = [
    "th07",
    "types",
]
