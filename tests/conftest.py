# tests/conftest.py
from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pyarrow as pa
import pytest
from loguru import logger
from onnx import TensorProto, helper

from onnxscore.data.row_source import ArrowRowSource


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)
    yield


# -----------------------------------------------------------------------------
# ONNX model builders
# -----------------------------------------------------------------------------
def build_model(nodes, inputs, outputs) -> bytes:
    graph = helper.make_graph(nodes, "test_graph", inputs, outputs)
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 8
    return model.SerializeToString()


def identity_model(elem_type=TensorProto.FLOAT, shape=("N", 5)) -> bytes:
    """x -> Identity -> y"""
    return build_model(
        [helper.make_node("Identity", ["x"], ["y"])],
        [helper.make_tensor_value_info("x", elem_type, list(shape))],
        [helper.make_tensor_value_info("y", elem_type, list(shape))],
    )


def softmax_model(size: int = 1000) -> bytes:
    """data_0 [N, size] -> Softmax -> softmaxout_1 [N, size]"""
    return build_model(
        [helper.make_node("Softmax", ["data_0"], ["softmaxout_1"], axis=-1)],
        [helper.make_tensor_value_info("data_0", TensorProto.FLOAT, ["N", size])],
        [helper.make_tensor_value_info("softmaxout_1", TensorProto.FLOAT, ["N", size])],
    )


def two_input_model() -> bytes:
    """a + b -> c, plus Identity(a) -> d"""
    return build_model(
        [
            helper.make_node("Add", ["a", "b"], ["c"]),
            helper.make_node("Identity", ["a"], ["d"]),
        ],
        [
            helper.make_tensor_value_info("a", TensorProto.FLOAT, ["N", 3]),
            helper.make_tensor_value_info("b", TensorProto.FLOAT, ["N", 3]),
        ],
        [
            helper.make_tensor_value_info("c", TensorProto.FLOAT, ["N", 3]),
            helper.make_tensor_value_info("d", TensorProto.FLOAT, ["N", 3]),
        ],
    )


def write_model(path: Path, data: bytes) -> Path:
    path.write_bytes(data)
    return path


@pytest.fixture
def identity_model_file(tmp_path: Path) -> Path:
    return write_model(tmp_path / "identity.onnx", identity_model())


@pytest.fixture
def softmax_model_file(tmp_path: Path) -> Path:
    return write_model(tmp_path / "squeezenet_head.onnx", softmax_model())


# -----------------------------------------------------------------------------
# Row sources
# -----------------------------------------------------------------------------
def vector_table(rows: list[list[float]], name: str = "x", item=pa.float32()) -> pa.Table:
    size = len(rows[0])
    flat = pa.array(np.asarray(rows, dtype=item.to_pandas_dtype()).reshape(-1), type=item)
    return pa.table({name: pa.FixedSizeListArray.from_arrays(flat, size)})


def sample_vector(size: int = 1000) -> list[float]:
    return [i / (size * 1.01) for i in range(size)]


@pytest.fixture
def dense_source() -> ArrowRowSource:
    return ArrowRowSource(
        vector_table([[1, 2, 3, 4, 5], [6, 7, 8, 9, 10]])
    )


@pytest.fixture
def models() -> SimpleNamespace:
    """ONNX model builders (bytes)."""
    return SimpleNamespace(
        build=build_model,
        identity=identity_model,
        softmax=softmax_model,
        two_input=two_input_model,
    )


@pytest.fixture
def tables() -> SimpleNamespace:
    return SimpleNamespace(vector=vector_table, sample=sample_vector)
