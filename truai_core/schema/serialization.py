# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 TruAI Contributors
from __future__ import annotations

from typing import Any, Mapping, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound="SchemaModel")


class SchemaModel(BaseModel):
    """
    Base for every record that crosses the store, the event stream or the CLI.

    Unknown keys are dropped on input, and None fields are left out of dumps so
    listeners and JSONL output only carry what was set.
    """

    model_config = {"extra": "ignore", "populate_by_name": True}

    def to_dict(self) -> dict[str, Any]:
        return dump_schema(self)

    @classmethod
    def from_dict(cls: type[T], data: Mapping[str, Any]) -> T:
        return load_schema(cls, data)


def dump_schema(model: BaseModel) -> dict[str, Any]:
    if not isinstance(model, BaseModel):
        raise TypeError(f"Expected a schema model, got: {type(model)!r}")
    return model.model_dump(mode="json", exclude_none=True)


def load_schema(model_cls: type[T], data: Mapping[str, Any]) -> T:
    if not isinstance(data, Mapping):
        raise TypeError(f"Schema input must be a mapping, got: {type(data)!r}")
    return model_cls.model_validate(dict(data))
