#!filepath: onnxscore/data/schema.py
from __future__ import annotations

"""
Column type model over pyarrow schemas.

Arrow type                                   -> ColumnType
-------------------------------------------------------------------
primitive                                    -> SCALAR
fixed_size_list<T>[n]                        -> VECTOR(n)
list<T> / large_list<T>                      -> VARIABLE_VECTOR
struct<indices: list<int>, values: list<T>>
    + field metadata {b"size": b"<n>"}       -> VECTOR(n), sparse
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator

import pyarrow as pa

from onnxscore.engines.element_types import ElementKind, kind_from_arrow

SPARSE_SIZE_KEY = b"size"
SPARSE_INDICES = "indices"
SPARSE_VALUES = "values"


class VectorKind(str, Enum):
    SCALAR = "scalar"
    VECTOR = "vector"
    VARIABLE_VECTOR = "variable_vector"


@dataclass(frozen=True)
class ColumnType:
    item_type: pa.DataType
    vector_kind: VectorKind = VectorKind.SCALAR
    size: int = 0               # VECTOR only; 0 = unknown
    sparse: bool = False

    @property
    def is_vector(self) -> bool:
        return self.vector_kind is not VectorKind.SCALAR

    @property
    def is_known_size(self) -> bool:
        return self.vector_kind is VectorKind.VECTOR and self.size > 0

    @property
    def item_kind(self) -> ElementKind:
        """Raises UnsupportedType when the item type has no registry entry."""
        return kind_from_arrow(self.item_type)

    def describe(self) -> str:
        if self.vector_kind is VectorKind.SCALAR:
            return str(self.item_type)
        tag = "sparse_vector" if self.sparse else "vector"
        if self.vector_kind is VectorKind.VARIABLE_VECTOR:
            return f"{tag}<{self.item_type}>"
        return f"{tag}<{self.item_type}, {self.size}>"

    @classmethod
    def from_field(cls, field: pa.Field) -> "ColumnType":
        t = field.type

        if pa.types.is_fixed_size_list(t):
            return cls(t.value_type, VectorKind.VECTOR, t.list_size)

        if pa.types.is_list(t) or pa.types.is_large_list(t):
            return cls(t.value_type, VectorKind.VARIABLE_VECTOR)

        if pa.types.is_struct(t) and _is_sparse_struct(t):
            meta = field.metadata or {}
            values_type = t.field(SPARSE_VALUES).type.value_type
            if SPARSE_SIZE_KEY not in meta:
                # 无逻辑长度：声明为变长，绑定时拒绝
                return cls(values_type, VectorKind.VARIABLE_VECTOR, sparse=True)
            return cls(
                values_type, VectorKind.VECTOR, int(meta[SPARSE_SIZE_KEY]), sparse=True
            )

        return cls(t)


def _is_sparse_struct(t: pa.StructType) -> bool:
    names = {t.field(i).name for i in range(t.num_fields)}
    if names != {SPARSE_INDICES, SPARSE_VALUES}:
        return False
    return all(
        pa.types.is_list(t.field(n).type) or pa.types.is_large_list(t.field(n).type)
        for n in names
    )


def sparse_vector_field(name: str, item_type: pa.DataType, size: int) -> pa.Field:
    """Arrow field declaring a sparse vector column of logical length `size`."""
    return pa.field(
        name,
        pa.struct([
            pa.field(SPARSE_INDICES, pa.list_(pa.int32())),
            pa.field(SPARSE_VALUES, pa.list_(item_type)),
        ]),
        metadata={SPARSE_SIZE_KEY: str(size).encode()},
    )


# ============================================================
# RowSchema: concrete schema of a row source
# ============================================================
class RowSchema:

    def __init__(self, schema: pa.Schema):
        self.arrow = schema
        self._types = [ColumnType.from_field(f) for f in schema]

    @property
    def names(self) -> list[str]:
        return list(self.arrow.names)

    def __len__(self) -> int:
        return len(self._types)

    def find(self, name: str) -> int | None:
        idx = self.arrow.get_field_index(name)
        return None if idx < 0 else idx

    def column_type(self, index: int) -> ColumnType:
        return self._types[index]


# ============================================================
# SchemaShape: declared shape (no concrete sizes required)
# ============================================================
@dataclass(frozen=True)
class SchemaShapeColumn:
    name: str
    vector_kind: VectorKind
    item_type: pa.DataType

    def describe(self) -> str:
        if self.vector_kind is VectorKind.SCALAR:
            return str(self.item_type)
        return f"{self.vector_kind.value}<{self.item_type}>"


class SchemaShape:

    def __init__(self, columns: Iterable[SchemaShapeColumn]):
        # 同名列后者覆盖前者
        self._columns: dict[str, SchemaShapeColumn] = {}
        for c in columns:
            self._columns[c.name] = c

    @classmethod
    def from_schema(cls, schema: RowSchema | pa.Schema) -> "SchemaShape":
        if isinstance(schema, pa.Schema):
            schema = RowSchema(schema)
        columns = []
        for i, name in enumerate(schema.names):
            ct = schema.column_type(i)
            columns.append(SchemaShapeColumn(name, ct.vector_kind, ct.item_type))
        return cls(columns)

    def find(self, name: str) -> SchemaShapeColumn | None:
        return self._columns.get(name)

    def with_column(self, column: SchemaShapeColumn) -> "SchemaShape":
        return SchemaShape([*self._columns.values(), column])

    @property
    def names(self) -> list[str]:
        return list(self._columns)

    def __iter__(self) -> Iterator[SchemaShapeColumn]:
        return iter(self._columns.values())

    def __len__(self) -> int:
        return len(self._columns)
