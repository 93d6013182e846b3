from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from bucketbind.durations import parse_duration
from bucketbind.errors import UnsupportedOperationError, ValidationError

OBJECT_NAME = "objectName"
EXPIRES = "expires"


class Operation(str, Enum):
    CREATE = "create"
    GET = "get"
    DELETE = "delete"
    LIST = "list"
    PRESIGNED_GET = "presignedGet"

    @classmethod
    def parse(cls, name: str) -> Operation:
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedOperationError(f"unsupported operation {name}") from None


def _object_name(metadata: Mapping[str, str], operation: Operation) -> str:
    object_name = metadata.get(OBJECT_NAME)
    if not object_name:
        raise ValidationError(f"missing {OBJECT_NAME} field", operation=operation.value)
    return object_name


@dataclass(frozen=True)
class ListParams:
    @classmethod
    def from_metadata(cls, metadata: Mapping[str, str], operation: Operation) -> ListParams:
        return cls()


@dataclass(frozen=True)
class ObjectParams:
    object_name: str

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, str], operation: Operation) -> ObjectParams:
        return cls(object_name=_object_name(metadata, operation))


@dataclass(frozen=True)
class PresignedGetParams:
    object_name: str
    expires: timedelta

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, str], operation: Operation) -> PresignedGetParams:
        object_name = _object_name(metadata, operation)
        duration = metadata.get(EXPIRES)
        if not duration:
            raise ValidationError(f"missing {EXPIRES} field", operation=operation.value)
        try:
            expires = parse_duration(duration, field_name=EXPIRES)
        except ValueError as exc:
            raise ValidationError(f"{EXPIRES} {duration} is invalid: {exc}", operation=operation.value) from exc
        return cls(object_name=object_name, expires=expires)
