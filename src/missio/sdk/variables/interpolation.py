"""
Placeholder interpolation.

This module is the single source of truth for:
- The ``{{ name }}`` placeholder pattern
- Builtin dynamic placeholders (``$guid``, ``$timestamp``, ``$randomInt``)
- Template interpolation and the bounded fixed-point pass over variable maps
"""

from __future__ import annotations

import random
import re
import time
import uuid
from collections.abc import Callable, Mapping

# {{ name }} with optional whitespace around the name
VARIABLE_PATTERN = re.compile(r"\{\{(\s*[\w.$-]+\s*)\}\}")

MAX_INTERPOLATION_PASSES = 10

BUILTIN_VARIABLES: dict[str, Callable[[], str]] = {
    "$guid": lambda: str(uuid.uuid4()),
    "$timestamp": lambda: str(int(time.time())),
    "$randomInt": lambda: str(random.randint(0, 1000)),
}


def is_builtin(name: str) -> bool:
    return name in BUILTIN_VARIABLES


def find_placeholders(text: str) -> list[str]:
    """Return the trimmed placeholder names in ``text`` in order of appearance."""
    if not text:
        return []
    return [match.group(1).strip() for match in VARIABLE_PATTERN.finditer(text)]


def interpolate(template: str, variables: Mapping[str, str]) -> str:
    """Expand ``{{ name }}`` placeholders in a template.

    Builtins are checked first and produce a fresh value per occurrence. Names
    that are neither builtins nor present in ``variables`` are left as they
    were written.

    Args:
        template: Text containing placeholders
        variables: Resolved variable mapping

    Returns:
        The expanded text
    """
    if not template:
        return template

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        builtin = BUILTIN_VARIABLES.get(name)
        if builtin is not None:
            return builtin()
        if name in variables:
            return variables[name]
        return match.group(0)

    return VARIABLE_PATTERN.sub(_replace, template)


def interpolate_variable_map(
    variables: Mapping[str, str], max_passes: int = MAX_INTERPOLATION_PASSES
) -> dict[str, str]:
    """Expand references between the values of a variable map.

    Each pass rewrites every value against the current state of the map and
    the loop stops after a pass that changes nothing. A value never expands
    its own name, and builtins are left for template time. Cycles between
    entries stay unresolved once ``max_passes`` is reached.
    """
    resolved = dict(variables)
    for _ in range(max_passes):
        changed = False
        for key, value in resolved.items():
            if "{{" not in value:
                continue

            def _replace(match: re.Match[str], _self: str = key) -> str:
                name = match.group(1).strip()
                if name != _self and name in resolved:
                    return resolved[name]
                return match.group(0)

            expanded = VARIABLE_PATTERN.sub(_replace, value)
            if expanded != value:
                resolved[key] = expanded
                changed = True
        if not changed:
            break
    return resolved


__all__ = [
    "BUILTIN_VARIABLES",
    "MAX_INTERPOLATION_PASSES",
    "VARIABLE_PATTERN",
    "find_placeholders",
    "interpolate",
    "interpolate_variable_map",
    "is_builtin",
]
