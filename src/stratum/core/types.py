"""Logical column and constraint types shared by dialects and the schema accessor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

DEFAULT_STRING_LENGTH = 255


class LogicalType(str, Enum):
    """Backend-independent column types.

    Each dialect maps these onto its own physical types; ``SHORT`` and
    ``BOOLEAN`` are where the backends disagree the most.
    """

    STRING = "string"
    INTEGER = "integer"
    SHORT = "short"
    LONG = "long"
    BOOLEAN = "boolean"


class ConstraintKind(str, Enum):
    PRIMARY_KEY = "primary_key"
    FOREIGN_KEY = "foreign_key"
    UNIQUE = "unique"


@dataclass(frozen=True)
class ColumnSpec:
    """
    Definition of one column for ``ADD COLUMN`` / ``CREATE TABLE``.

    ``length`` only applies to ``STRING`` columns; dialects fall back to
    ``DEFAULT_STRING_LENGTH`` when it is omitted. A column that is not
    nullable on an existing table needs a ``default`` so existing rows can
    be filled.
    """

    name: str
    type: LogicalType
    length: int | None = None
    default: Any = None
    nullable: bool = True

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("column name must not be empty")
        if self.length is not None and self.type is not LogicalType.STRING:
            raise ValueError(f"length only applies to string columns, got {self.type.value}")
        if self.length is not None and self.length <= 0:
            raise ValueError(f"length must be positive, got {self.length}")


@dataclass(frozen=True)
class ForeignKeySpec:
    """A named foreign key declared inline in ``CREATE TABLE``."""

    name: str
    columns: tuple[str, ...]
    referenced_table: str
    referenced_columns: tuple[str, ...]
    cascade: bool = False


__all__ = [
    "DEFAULT_STRING_LENGTH",
    "LogicalType",
    "ConstraintKind",
    "ColumnSpec",
    "ForeignKeySpec",
]
