#!filepath: onnxscore/transform/tensor_adapter.py
from __future__ import annotations

"""
TensorAdapter (FINAL / FROZEN)

Adapts a row cursor (row-iterator interface) to a tensor-iterator interface.

Construction (once per concrete schema) validates and resolves:
    1. column exists
    2. tensor shape (leading unresolved dim pinned to 1)
    3. element kind: representable and equal to the model input kind
    4. sparse columns declare their logical size
    5. known vector size vs. resolved shape

bind(cursor) dispatches once on (vector?, element kind) and returns a
per-cursor extractor; extractor.produce_tensor() is called once per row.

Contract:
- tensor shape / kind never change across calls of one extractor
- tensor values may be a reused buffer, overwritten by the next call
- extractors are NOT thread-safe: one per active cursor
"""

import math

import numpy as np

from onnxscore import logs
from onnxscore.data.row_source import RowCursor, VectorValue
from onnxscore.data.schema import ColumnType, RowSchema
from onnxscore.engines.element_types import ElementKind, to_numpy
from onnxscore.engines.onnx_model import UNRESOLVED_DIM, NodeInfo, Tensor
from onnxscore.utils.errors import SchemaMismatch, UnsupportedType


# ============================================================
# Shape resolution
# ============================================================
def resolve_shape(node_shape: tuple[int, ...], column: str, ct: ColumnType) -> tuple[int, ...]:
    """
    - leading UNRESOLVED -> 1 (one row per inference call)
    - scalar column -> () (zero-dimensional tensor)
    - one remaining UNRESOLVED dim + known vector size -> solved here
    - one remaining UNRESOLVED dim + variable vector -> left for per-row fill
    """
    if not ct.is_vector:
        return ()

    dims = list(node_shape)
    if dims and dims[0] == UNRESOLVED_DIM:
        dims[0] = 1

    unresolved = [i for i, d in enumerate(dims) if d == UNRESOLVED_DIM]
    if len(unresolved) > 1:
        raise SchemaMismatch(
            column,
            "model input has more than one unresolved non-batch dimension",
            expected="at most one unresolved dimension",
            actual=tuple(node_shape),
        )

    known = math.prod(d for d in dims if d != UNRESOLVED_DIM)

    if unresolved and ct.is_known_size:
        if known == 0 or ct.size % known:
            raise SchemaMismatch(
                column,
                "vector size does not fit model input shape",
                expected=f"multiple of {known}",
                actual=ct.size,
            )
        dims[unresolved[0]] = ct.size // known

    elif not unresolved and ct.is_known_size and ct.size != known:
        raise SchemaMismatch(
            column,
            "vector size does not match model input shape",
            expected=f"{known} {tuple(dims)}",
            actual=ct.size,
        )

    return tuple(dims)


# ============================================================
# Extractors (closed set; chosen once in bind())
# ============================================================
class ScalarExtractor:
    """Single value -> zero-dimensional tensor."""

    def __init__(self, getter, kind: ElementKind):
        self._getter = getter
        self.kind = kind
        self.shape: tuple[int, ...] = ()
        self._buf = np.empty(1, dtype=to_numpy(kind))

    def produce_tensor(self) -> Tensor:
        self._buf[0] = self._getter()
        return Tensor(self.kind, self.shape, self._buf)


class VectorExtractor:
    """
    Vector value (dense or sparse) -> dense tensor of the resolved shape.

    Buffer grows on demand, never shrinks.
    """

    def __init__(self, getter, kind: ElementKind, shape: tuple[int, ...], column: str):
        self._getter = getter
        self.kind = kind
        self.shape = shape
        self.column = column
        self._dtype = to_numpy(kind)
        self._free_dim = shape.index(UNRESOLVED_DIM) if UNRESOLVED_DIM in shape else None
        self._fixed = math.prod(d for d in shape if d != UNRESOLVED_DIM)
        self._buf = np.empty(self._fixed if self._free_dim is None else 0, dtype=self._dtype)

    def _row_shape(self, length: int) -> tuple[int, ...]:
        if self._free_dim is None:
            if length != self._fixed:
                raise SchemaMismatch(
                    self.column,
                    "row vector length does not match model input shape",
                    expected=self._fixed,
                    actual=length,
                )
            return self.shape

        if self._fixed == 0 or length % self._fixed or length == 0:
            raise SchemaMismatch(
                self.column,
                "row vector length does not fit model input shape",
                expected=f"non-zero multiple of {self._fixed}",
                actual=length,
            )
        dims = list(self.shape)
        dims[self._free_dim] = length // self._fixed
        return tuple(dims)

    def produce_tensor(self) -> Tensor:
        value: VectorValue = self._getter()
        shape = self._row_shape(value.length)

        if value.values.dtype != self._dtype:
            value = VectorValue(value.length, value.values.astype(self._dtype), value.indices)

        self._buf = value.to_dense(self._buf)
        return Tensor(self.kind, shape, self._buf[: value.length])


# ============================================================
# TensorAdapter
# ============================================================
class TensorAdapter:

    def __init__(self, schema: RowSchema, column: str, node: NodeInfo):
        self.column = column
        self.node = node

        index = schema.find(column)
        if index is None:
            raise SchemaMismatch(column, "column does not exist", actual=schema.names)
        self.column_index = index
        self.column_type = ct = schema.column_type(index)

        try:
            item_kind = ct.item_kind
        except UnsupportedType as e:
            raise SchemaMismatch(
                column, "element type not supported", actual=str(ct.item_type)
            ) from e

        # node kind outside the registry is fatal here (UnsupportedType)
        node_kind = node.kind
        if item_kind is not node_kind:
            raise SchemaMismatch(
                column,
                f"element type does not match model input '{node.name}'",
                expected=node_kind.value,
                actual=item_kind.value,
            )
        self.kind = node_kind

        if ct.sparse and not ct.is_known_size:
            raise SchemaMismatch(
                column,
                "sparse column declares no logical size",
                expected="sparse vector with a known size",
                actual=ct.describe(),
            )

        self.shape = resolve_shape(node.shape, column, ct)

        logs.debug(
            f"[TensorAdapter] column={column} type={ct.describe()} -> "
            f"input={node.name} shape={self.shape} kind={self.kind.value}"
        )

    @property
    def is_vector(self) -> bool:
        return self.column_type.is_vector

    def bind(self, cursor: RowCursor) -> ScalarExtractor | VectorExtractor:
        getter = cursor.get_getter(self.column_index)
        if self.is_vector:
            return VectorExtractor(getter, self.kind, self.shape, self.column)
        return ScalarExtractor(getter, self.kind)
