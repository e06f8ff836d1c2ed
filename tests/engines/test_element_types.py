# tests/engines/test_element_types.py
from __future__ import annotations

import numpy as np
import pyarrow as pa
import pytest

from onnxscore.engines.element_types import (
    ElementKind,
    kind_from_arrow,
    kind_from_numpy,
    kind_from_onnx,
    supported_onnx_types,
    to_arrow,
    to_numpy,
)
from onnxscore.utils.errors import UnsupportedType


@pytest.mark.parametrize(
    "onnx_type, kind",
    [
        ("tensor(float)", ElementKind.FLOAT32),
        ("tensor(double)", ElementKind.FLOAT64),
        ("tensor(int16)", ElementKind.INT16),
        ("tensor(int64)", ElementKind.INT64),
        ("tensor(uint32)", ElementKind.UINT32),
        ("tensor(bool)", ElementKind.BOOL),
        ("tensor(string)", ElementKind.TEXT),
    ],
)
def test_kind_from_onnx(onnx_type, kind):
    assert kind_from_onnx(onnx_type) is kind


def test_every_kind_has_numpy_and_arrow_mapping():
    """
    registry 双向一致：kind -> arrow -> kind
    """
    for kind in ElementKind:
        assert kind_from_arrow(to_arrow(kind)) is kind
        assert to_numpy(kind) is not None


def test_numpy_lookup():
    assert kind_from_numpy(np.float32) is ElementKind.FLOAT32
    assert kind_from_numpy(np.dtype("<U3")) is ElementKind.TEXT
    assert kind_from_numpy(np.bool_) is ElementKind.BOOL


def test_large_string_maps_to_text():
    assert kind_from_arrow(pa.large_string()) is ElementKind.TEXT


@pytest.mark.parametrize("bad", ["tensor(float16)", "tensor(int8)", "seq(tensor(float))"])
def test_unsupported_onnx_type(bad):
    with pytest.raises(UnsupportedType):
        kind_from_onnx(bad)


def test_unsupported_arrow_and_numpy_type():
    with pytest.raises(UnsupportedType):
        kind_from_arrow(pa.int8())
    with pytest.raises(UnsupportedType):
        kind_from_numpy(np.float16)


def test_supported_onnx_types_cover_all_kinds():
    assert {kind_from_onnx(t) for t in supported_onnx_types()} == set(ElementKind)
