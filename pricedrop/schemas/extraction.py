"""Caller-supplied email parsing rules.

Rules arrive as strings in a tiny pattern language (``regex:<pattern>`` or
``linkContains:<substring>``) and are turned into tagged rule objects while the
request is validated, so the parser never sees raw rule strings.
"""

from __future__ import annotations

import re
from functools import cached_property
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

_REGEX_PREFIX = "regex:"
_LINK_PREFIX = "linkContains:"


class RegexRule(BaseModel):
    kind: Literal["regex"] = "regex"
    pattern: str

    @field_validator("pattern")
    @classmethod
    def _must_compile(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regex {value!r}: {exc}") from exc
        return value

    @cached_property
    def compiled(self) -> re.Pattern[str]:
        return re.compile(self.pattern, re.IGNORECASE)


class LinkContainsRule(BaseModel):
    kind: Literal["link_contains"] = "link_contains"
    substring: str = Field(min_length=1)


ExtractionRule = Annotated[RegexRule | LinkContainsRule, Field(discriminator="kind")]


def parse_rule(value: str) -> RegexRule | LinkContainsRule:
    """Parse ``regex:...`` / ``linkContains:...`` into a rule object."""
    if value.startswith(_REGEX_PREFIX):
        return RegexRule(pattern=value[len(_REGEX_PREFIX):])
    if value.startswith(_LINK_PREFIX):
        return LinkContainsRule(substring=value[len(_LINK_PREFIX):])
    raise ValueError(f"unknown rule {value!r}: expected 'regex:' or 'linkContains:' prefix")


class MatchRule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(default="booking.com", alias="from")
    subject_contains: str = Field(default="confirmation", alias="subjectContains")


class ParsingRules(BaseModel):
    match: MatchRule = Field(default_factory=MatchRule)
    extract: dict[str, ExtractionRule] = {}

    @field_validator("extract", mode="before")
    @classmethod
    def _parse_rule_strings(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        return {
            field: parse_rule(rule) if isinstance(rule, str) else rule
            for field, rule in value.items()
        }
