"""Payload decoders returning a tagged result instead of raising.

Every response body entering the system passes through ``decode`` exactly once;
callers branch on ``Ok`` / ``Err``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: str


Decoded = Union[Ok[T], Err]

_adapters: dict[Any, TypeAdapter] = {}


def adapter_for(target: Any) -> TypeAdapter:
    adapter = _adapters.get(target)
    if adapter is None:
        adapter = _adapters[target] = TypeAdapter(target)
    return adapter


def decode(target: type[T], payload: Any) -> Decoded[T]:
    """Validate ``payload`` against ``target`` (a model class or type)."""
    try:
        return Ok(adapter_for(target).validate_python(payload))
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors()[:5]
        )
        return Err(f"{e.error_count()} invalid field(s): {fields}")
