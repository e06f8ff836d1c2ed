# tests/transform/test_tensor_adapter.py
from __future__ import annotations

import numpy as np
import pyarrow as pa
import pytest

from onnxscore.data.row_source import ArrowRowSource
from onnxscore.data.schema import ColumnType, VectorKind, sparse_vector_field
from onnxscore.engines.element_types import ElementKind
from onnxscore.engines.onnx_model import UNRESOLVED_DIM, NodeInfo
from onnxscore.transform.tensor_adapter import (
    ScalarExtractor,
    TensorAdapter,
    VectorExtractor,
    resolve_shape,
)
from onnxscore.utils.errors import OnnxScoringError, SchemaMismatch, UnsupportedType

U = UNRESOLVED_DIM


def node(shape, onnx_type="tensor(float)", name="x") -> NodeInfo:
    return NodeInfo(name=name, shape=tuple(shape), onnx_type=onnx_type)


def vec(size: int, item=pa.float32()) -> ColumnType:
    return ColumnType(item, VectorKind.VECTOR, size)


# -----------------------------------------------------------------------------
# resolve_shape
# -----------------------------------------------------------------------------
@pytest.mark.parametrize(
    "node_shape, ct, expected",
    [
        ((U, 5), vec(5), (1, 5)),
        ((1, 5), vec(5), (1, 5)),
        ((U, U), vec(7), (1, 7)),
        ((U, 2, U), vec(6), (1, 2, 3)),
        ((U, 3, 2), ColumnType(pa.float32(), VectorKind.VARIABLE_VECTOR), (1, 3, 2)),
        ((U, U), ColumnType(pa.float32(), VectorKind.VARIABLE_VECTOR), (1, U)),
    ],
)
def test_resolve_shape(node_shape, ct, expected):
    assert resolve_shape(node_shape, "x", ct) == expected


def test_dynamic_batch_always_pinned_to_one():
    """
    leading unresolved 维度恒定解析为 1，与输入数据无关
    """
    for size in (1, 5, 1000):
        assert resolve_shape((U, size), "x", vec(size))[0] == 1


def test_scalar_column_resolves_to_rank_zero():
    assert resolve_shape((U, 1), "s", ColumnType(pa.float32())) == ()


def test_resolve_shape_size_mismatch():
    with pytest.raises(SchemaMismatch, match="does not match") as exc:
        resolve_shape((U, 5), "x", vec(2))

    assert exc.value.column == "x"
    assert exc.value.actual == 2


def test_resolve_shape_not_divisible():
    with pytest.raises(SchemaMismatch):
        resolve_shape((U, 4, U), "x", vec(6))


def test_resolve_shape_two_unresolved():
    with pytest.raises(SchemaMismatch, match="more than one"):
        resolve_shape((U, U, U), "x", vec(6))


# -----------------------------------------------------------------------------
# TensorAdapter construction
# -----------------------------------------------------------------------------
def test_missing_column(dense_source):
    with pytest.raises(SchemaMismatch, match="does not exist"):
        TensorAdapter(dense_source.schema, "nope", node((U, 5)))


def test_vector_length_mismatch_at_construction(tables):
    source = ArrowRowSource(tables.vector([[0.0, 0.0]]))

    with pytest.raises(SchemaMismatch):
        TensorAdapter(source.schema, "x", node((U, 5)))


def test_element_kind_mismatch(dense_source):
    with pytest.raises(SchemaMismatch, match="element type") as exc:
        TensorAdapter(dense_source.schema, "x", node((U, 5), "tensor(double)"))

    assert exc.value.expected == "float64"
    assert exc.value.actual == "float32"


def test_unrepresentable_column_kind():
    source = ArrowRowSource(
        pa.table({"x": pa.FixedSizeListArray.from_arrays(pa.array([1, 2], type=pa.int8()), 2)})
    )

    with pytest.raises(SchemaMismatch, match="not supported"):
        TensorAdapter(source.schema, "x", node((U, 2)))


def test_unsupported_node_kind(dense_source):
    with pytest.raises(UnsupportedType):
        TensorAdapter(dense_source.schema, "x", node((U, 5), "tensor(float16)"))


# -----------------------------------------------------------------------------
# produce_tensor
# -----------------------------------------------------------------------------
def test_vector_extractor_produces_rows(dense_source):
    adapter = TensorAdapter(dense_source.schema, "x", node((U, 5)))
    cursor = dense_source.cursor()
    extractor = adapter.bind(cursor)

    assert isinstance(extractor, VectorExtractor)

    cursor.move_next()
    t1 = extractor.produce_tensor()
    assert t1.shape == (1, 5)
    assert t1.kind is ElementKind.FLOAT32
    assert t1.values.tolist() == [1, 2, 3, 4, 5]

    cursor.move_next()
    t2 = extractor.produce_tensor()
    assert t2.shape == t1.shape
    assert t2.values.tolist() == [6, 7, 8, 9, 10]


def test_vector_extractor_reuses_buffer(dense_source):
    adapter = TensorAdapter(dense_source.schema, "x", node((U, 5)))
    cursor = dense_source.cursor()
    extractor = adapter.bind(cursor)

    cursor.move_next()
    first = extractor.produce_tensor().values
    cursor.move_next()
    second = extractor.produce_tensor().values

    assert np.shares_memory(first, second)


def test_scalar_extractor_rank_zero():
    source = ArrowRowSource(pa.table({"s": pa.array([1.5, 2.5], type=pa.float32())}))
    adapter = TensorAdapter(source.schema, "s", node(()))
    cursor = source.cursor()
    extractor = adapter.bind(cursor)

    assert isinstance(extractor, ScalarExtractor)

    cursor.move_next()
    t = extractor.produce_tensor()
    assert t.shape == ()
    assert t.as_array().ndim == 0
    assert float(t.as_array()) == 1.5


def test_sparse_column_is_densified():
    field = sparse_vector_field("sp", pa.float32(), 5)
    data = pa.array(
        [{"indices": [0, 3, 4], "values": [-0.0, 1.0, 1.0]}], type=field.type
    )
    source = ArrowRowSource(pa.Table.from_arrays([data], schema=pa.schema([field])))
    adapter = TensorAdapter(source.schema, "sp", node((U, 5), name="sp"))
    cursor = source.cursor()
    extractor = adapter.bind(cursor)

    cursor.move_next()
    t = extractor.produce_tensor()

    assert t.shape == (1, 5)
    assert t.values.tolist() == [-0.0, 0.0, 0.0, 1.0, 1.0]


def test_variable_vector_fills_free_dim():
    source = ArrowRowSource(
        pa.table({"v": pa.array([[1, 2, 3], [4, 5]], type=pa.list_(pa.int64()))})
    )
    adapter = TensorAdapter(source.schema, "v", node((U, U), "tensor(int64)", "v"))
    cursor = source.cursor()
    extractor = adapter.bind(cursor)

    cursor.move_next()
    assert extractor.produce_tensor().shape == (1, 3)
    cursor.move_next()
    t = extractor.produce_tensor()
    assert t.shape == (1, 2)
    assert t.values.tolist() == [4, 5]


def test_variable_vector_row_mismatch_names_column():
    source = ArrowRowSource(
        pa.table({"v": pa.array([[1.0, 2.0]], type=pa.list_(pa.float32()))})
    )
    adapter = TensorAdapter(source.schema, "v", node((U, 3), name="v"))
    cursor = source.cursor()
    extractor = adapter.bind(cursor)
    cursor.move_next()

    with pytest.raises(SchemaMismatch) as exc:
        extractor.produce_tensor()

    assert exc.value.column == "v"
    assert exc.value.expected == 3
    assert exc.value.actual == 2


def test_independent_extractors_per_cursor(dense_source):
    adapter = TensorAdapter(dense_source.schema, "x", node((U, 5)))
    c1, c2 = dense_source.cursor(), dense_source.cursor()
    e1, e2 = adapter.bind(c1), adapter.bind(c2)

    c1.move_next()
    c1.move_next()
    c2.move_next()

    assert e1.produce_tensor().values.tolist() == [6, 7, 8, 9, 10]
    assert e2.produce_tensor().values.tolist() == [1, 2, 3, 4, 5]


def _sparse_source(rows, field: pa.Field) -> ArrowRowSource:
    data = pa.array(rows, type=field.type)
    return ArrowRowSource(pa.Table.from_arrays([data], schema=pa.schema([field])))


def test_sparse_column_without_size_fails_at_binding():
    field = pa.field("sp", sparse_vector_field("sp", pa.float32(), 5).type)
    source = _sparse_source(
        [{"indices": [0, 3, 4], "values": [1.0, 1.0, 1.0]}, {"indices": [0, 3], "values": [2.0, 1.0]}],
        field,
    )

    with pytest.raises(SchemaMismatch, match="no logical size"):
        TensorAdapter(source.schema, "sp", node((U, 5), name="sp"))


def test_sparse_trailing_zeros_keep_declared_length():
    source = _sparse_source(
        [{"indices": [0, 3], "values": [2.0, 1.0]}],
        sparse_vector_field("sp", pa.float32(), 5),
    )
    adapter = TensorAdapter(source.schema, "sp", node((U, 5), name="sp"))
    cursor = source.cursor()
    extractor = adapter.bind(cursor)

    cursor.move_next()
    assert extractor.produce_tensor().values.tolist() == [2.0, 0.0, 0.0, 1.0, 0.0]


@pytest.mark.parametrize(
    "row, reason",
    [
        ({"indices": [0, 7], "values": [1.0, 2.0]}, "out of range"),
        ({"indices": [-1], "values": [1.0]}, "out of range"),
        ({"indices": [0, 1], "values": [1.0]}, "count differ"),
    ],
)
def test_bad_sparse_row_raises_schema_mismatch(row, reason):
    source = _sparse_source([row], sparse_vector_field("sp", pa.float32(), 5))
    adapter = TensorAdapter(source.schema, "sp", node((U, 5), name="sp"))
    cursor = source.cursor()
    extractor = adapter.bind(cursor)

    cursor.move_next()
    with pytest.raises(OnnxScoringError, match=f"'sp'.*{reason}"):
        extractor.produce_tensor()
