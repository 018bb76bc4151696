"""Shared Pydantic base models for the HTTP layer."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class PulseLogicBase(BaseModel):
    """Base model for every request and response body: camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


class ApiResponse(PulseLogicBase, Generic[DataT]):
    """The ``{success, data}`` envelope every endpoint answers with."""

    success: bool = True
    data: DataT | None = None
    error: str | None = None

