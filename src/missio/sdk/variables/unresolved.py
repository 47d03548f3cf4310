"""Pre-flight scan for placeholders a request would send unexpanded."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from missio.sdk.variables.interpolation import find_placeholders, is_builtin


def detect_unresolved(texts: Iterable[str | None], variables: Mapping[str, str]) -> list[str]:
    """Return placeholder names that the mapping cannot satisfy, in first-seen order.

    Builtins and ``$secret.`` names are never reported.
    """
    missing: list[str] = []
    seen: set[str] = set()
    for text in texts:
        for name in find_placeholders(text or ""):
            if name in seen:
                continue
            seen.add(name)
            if is_builtin(name) or name.startswith("$secret.") or name in variables:
                continue
            missing.append(name)
    return missing


__all__ = ["detect_unresolved"]
