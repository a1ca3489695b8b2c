from __future__ import annotations


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    """Order two participant ids so an unordered pair has one representation."""
    return (a, b) if a <= b else (b, a)
