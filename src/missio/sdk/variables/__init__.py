"""Collection variables: data model, merge engine and interpolation."""

from missio.sdk.variables.interpolation import (
    BUILTIN_VARIABLES,
    find_placeholders,
    interpolate,
    interpolate_variable_map,
)
from missio.sdk.variables.models import (
    Environment,
    MissioCollection,
    OpenCollection,
    RequestDefaults,
    SecretProviderConfig,
    SecretVariable,
    Variable,
)
from missio.sdk.variables.unresolved import detect_unresolved

__all__ = [
    "BUILTIN_VARIABLES",
    "Environment",
    "MissioCollection",
    "OpenCollection",
    "RequestDefaults",
    "SecretProviderConfig",
    "SecretVariable",
    "Variable",
    "detect_unresolved",
    "find_placeholders",
    "interpolate",
    "interpolate_variable_map",
]
