"""Admission rules for launch requests."""

from .parameters import (
    MAX_PARAMETER_LENGTH,
    ParameterLookup,
    ParameterSpec,
    TaskParameter,
    bind_parameters,
)
from .subdomain import validate_subdomain

__all__ = [
    "MAX_PARAMETER_LENGTH",
    "ParameterLookup",
    "ParameterSpec",
    "TaskParameter",
    "bind_parameters",
    "validate_subdomain",
]
