#!filepath: onnxscore/data/row_source.py
from __future__ import annotations

"""
ArrowRowSource / RowCursor

Pull-based row access over a pyarrow Table:
- cursor.move_next() advances one row
- cursor.get_getter(col) -> callable returning the value at the current row
    * scalar column -> python / numpy scalar
    * vector column -> VectorValue (views into the column buffers)

Column buffers are converted to numpy once per source and shared
read-only by every cursor. A cursor is used by one thread at a time.
"""

from dataclasses import dataclass
from typing import Callable, Iterable

import numpy as np
import pyarrow as pa

from onnxscore.data.schema import (
    SPARSE_INDICES,
    SPARSE_SIZE_KEY,
    SPARSE_VALUES,
    ColumnType,
    RowSchema,
    VectorKind,
)
from onnxscore.utils.errors import ConfigurationError, SchemaMismatch


# ============================================================
# VectorValue
# ============================================================
@dataclass(frozen=True)
class VectorValue:
    """
    Vector cell value.

    - indices is None : dense, values has `length` items
    - indices set     : sparse, values[i] sits at position indices[i]
    """
    length: int
    values: np.ndarray
    indices: np.ndarray | None = None

    @property
    def is_dense(self) -> bool:
        return self.indices is None

    def to_dense(self, dst: np.ndarray | None = None) -> np.ndarray:
        """
        Write the dense form into dst[:length] and return the buffer.

        dst is grown (reallocated) when smaller than length, never shrunk.
        """
        if dst is None or dst.shape[0] < self.length or dst.dtype != self.values.dtype:
            dst = np.empty(max(self.length, 0 if dst is None else dst.shape[0]),
                           dtype=self.values.dtype)

        out = dst[: self.length]
        if self.is_dense:
            out[:] = self.values[: self.length]
            return dst

        out[:] = 0 if self.values.dtype != object else ""
        if self.indices.size:
            if self.indices.max() >= self.length or self.indices.min() < 0:
                raise IndexError(
                    f"sparse index out of range for length {self.length}"
                )
            # 按原始顺序写入（重复下标以最后一次为准）
            out[self.indices] = self.values
        return dst

    def to_numpy(self) -> np.ndarray:
        return self.to_dense()[: self.length]


# ============================================================
# Column accessors (built once per source)
# ============================================================
def _to_numpy(arr: pa.Array) -> np.ndarray:
    return arr.to_numpy(zero_copy_only=False)


def _list_parts(arr: pa.Array) -> tuple[np.ndarray, np.ndarray]:
    """(offsets, child values) of a list / large_list array."""
    return _to_numpy(arr.offsets), _to_numpy(arr.values)


def _scalar_accessor(arr: pa.Array) -> Callable[[int], object]:
    data = _to_numpy(arr)
    return lambda i: data[i]


def _fixed_vector_accessor(arr: pa.FixedSizeListArray, size: int) -> Callable[[int], VectorValue]:
    child = _to_numpy(arr.values)
    base = arr.offset

    def get(i: int) -> VectorValue:
        start = (base + i) * size
        return VectorValue(size, child[start:start + size])

    return get


def _variable_vector_accessor(arr: pa.Array) -> Callable[[int], VectorValue]:
    offsets, child = _list_parts(arr)

    def get(i: int) -> VectorValue:
        lo, hi = offsets[i], offsets[i + 1]
        return VectorValue(int(hi - lo), child[lo:hi])

    return get


def _sparse_vector_accessor(
    arr: pa.StructArray, ct: ColumnType, name: str
) -> Callable[[int], VectorValue]:
    """
    Rows are validated against the declared logical size on access; the
    size itself is required up front.
    """
    size = ct.size
    if size <= 0:
        raise SchemaMismatch(
            name,
            "sparse column declares no logical size",
            expected=f"field metadata {SPARSE_SIZE_KEY!r}",
            actual=ct.describe(),
        )

    children = dict(zip((f.name for f in arr.type), arr.flatten()))
    idx_offsets, idx_child = _list_parts(children[SPARSE_INDICES])
    val_offsets, val_child = _list_parts(children[SPARSE_VALUES])

    def get(i: int) -> VectorValue:
        indices = idx_child[idx_offsets[i]:idx_offsets[i + 1]]
        values = val_child[val_offsets[i]:val_offsets[i + 1]]
        if indices.shape[0] != values.shape[0]:
            raise SchemaMismatch(
                name,
                f"sparse indices/values count differ at row {i}",
                expected=indices.shape[0],
                actual=values.shape[0],
            )
        if indices.size:
            bad = indices[(indices < 0) | (indices >= size)]
            if bad.size:
                raise SchemaMismatch(
                    name,
                    f"sparse index out of range at row {i}",
                    expected=f"[0, {size})",
                    actual=int(bad[0]),
                )
        return VectorValue(size, values, indices)

    return get


def _make_accessor(arr: pa.Array, ct: ColumnType, name: str) -> Callable[[int], object]:
    if ct.vector_kind is VectorKind.SCALAR:
        return _scalar_accessor(arr)
    if ct.sparse:
        return _sparse_vector_accessor(arr, ct, name)
    if ct.vector_kind is VectorKind.VECTOR:
        return _fixed_vector_accessor(arr, ct.size)
    return _variable_vector_accessor(arr)


# ============================================================
# ArrowRowSource
# ============================================================
class ArrowRowSource:

    def __init__(self, table: pa.Table):
        self.table = table.combine_chunks()
        self.schema = RowSchema(self.table.schema)
        self._accessors: dict[int, Callable[[int], object]] = {}

    @property
    def num_rows(self) -> int:
        return self.table.num_rows

    def accessor(self, col: int) -> Callable[[int], object]:
        acc = self._accessors.get(col)
        if acc is None:
            column = self.table.column(col)
            arr = column.chunk(0) if column.num_chunks else pa.array([], type=column.type)
            acc = _make_accessor(arr, self.schema.column_type(col), self.schema.names[col])
            self._accessors[col] = acc
        return acc

    def cursor(self, active: Callable[[int], bool] | Iterable[int] | None = None) -> "RowCursor":
        """
        active: predicate / iterable of column indices; None = all columns.
        """
        if active is None:
            cols = set(range(len(self.schema)))
        elif callable(active):
            cols = {i for i in range(len(self.schema)) if active(i)}
        else:
            cols = set(active)
        return RowCursor(self, cols)


class RowCursor:

    def __init__(self, source: ArrowRowSource, active: set[int]):
        self.source = source
        self.schema = source.schema
        self.active = frozenset(active)
        self.position = -1

    def move_next(self) -> bool:
        if self.position + 1 >= self.source.num_rows:
            self.position = self.source.num_rows
            return False
        self.position += 1
        return True

    def is_active(self, col: int) -> bool:
        return col in self.active

    def get_getter(self, col: int) -> Callable[[], object]:
        if col not in self.active:
            raise ConfigurationError(
                f"column '{self.schema.names[col]}' is not active in this cursor"
            )
        acc = self.source.accessor(col)
        return lambda: acc(self.position)
