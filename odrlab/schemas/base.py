"""Shared pydantic configuration: camelCase JSON and string sanitising."""

import re
from typing import ClassVar, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

_SCRIPT_BLOCK = re.compile(r"<script.*?>.*?</script>", re.IGNORECASE | re.DOTALL)
_ANGLE_BRACKETS = re.compile(r"[<>]")


def sanitize(value: Optional[str]) -> Optional[str]:
    """Drop <script> blocks and any remaining angle brackets."""
    if not value:
        return value
    return _ANGLE_BRACKETS.sub("", _SCRIPT_BLOCK.sub("", value))


class CamelModel(BaseModel):
    """
    Request body that accepts both camelCase and snake_case keys.
    Every string field is sanitised unless listed in ``raw_fields``, before
    the length constraints run.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    raw_fields: ClassVar[FrozenSet[str]] = frozenset({"password", "image", "image_avatar"})

    @field_validator("*", mode="before")
    @classmethod
    def sanitize_strings(cls, value, info: ValidationInfo):
        if type(value) is str and info.field_name not in cls.raw_fields:
            return sanitize(value)
        return value
