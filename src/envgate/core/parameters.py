"""Launch parameter schema and binder.

Each launch request carries free-form parameters. Only the names declared
in the configured schema are read; values are defaulted, checked against
the optional rule and a 255 code point ceiling, then handed to the
orchestrator as a flat ``TaskParameter`` mapping.
"""

from __future__ import annotations

import re
from functools import cached_property
from typing import Callable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, field_validator

from envgate.exceptions import (
    InvalidParameterValue,
    MissingParameter,
    ParameterTooLong,
)

MAX_PARAMETER_LENGTH = 255

TaskParameter = dict[str, str]

ParameterLookup = Callable[[str], Optional[str]]


class ParameterSpec(BaseModel):
    """One allowed launch parameter, loaded from configuration."""

    model_config = ConfigDict(frozen=True)

    name: str
    required: bool = False
    default: str = ""
    rule: str = ""
    description: str = ""

    @field_validator("rule")
    @classmethod
    def _check_rule(cls, rule: str) -> str:
        if rule:
            try:
                re.compile(rule)
            except re.error as exc:
                raise ValueError(f"invalid rule {rule!r}: {exc}") from exc
        return rule

    @cached_property
    def regexp(self) -> Optional[re.Pattern]:
        return re.compile(self.rule) if self.rule else None


def bind_parameters(
    schema: Sequence[ParameterSpec],
    lookup: ParameterLookup,
) -> TaskParameter:
    """Resolve ``schema`` against caller values, stopping at the first error.

    Raises:
        MissingParameter: required parameter with no value and no default.
        InvalidParameterValue: value does not fully match the rule.
        ParameterTooLong: value longer than 255 code points.
    """
    parameters: TaskParameter = {}

    for spec in schema:
        value = lookup(spec.name) or ""
        if not value and spec.default:
            value = spec.default

        if not value:
            if spec.required:
                raise MissingParameter(spec.name)
            continue

        if spec.regexp is not None and not spec.regexp.fullmatch(value):
            raise InvalidParameterValue(spec.name)
        # str length counts code points, not encoded bytes
        if len(value) > MAX_PARAMETER_LENGTH:
            raise ParameterTooLong(spec.name)

        parameters[spec.name] = value

    return parameters
