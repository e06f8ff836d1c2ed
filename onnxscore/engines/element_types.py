#!filepath: onnxscore/engines/element_types.py
from __future__ import annotations

"""
Element-Type Registry (FROZEN)

Bidirectional mapping between ONNX tensor element types, numpy dtypes
and pyarrow primitive types.

- Tables are module-level dicts built once at import; never mutated
- Lookups that miss raise UnsupportedType
"""

from enum import Enum
from typing import Dict

import numpy as np
import pyarrow as pa

from onnxscore.utils.errors import UnsupportedType


class ElementKind(str, Enum):
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    BOOL = "bool"
    TEXT = "text"


# ============================================================
# Constant tables
# ============================================================
_ONNX_TO_KIND: Dict[str, ElementKind] = {
    "tensor(float)": ElementKind.FLOAT32,
    "tensor(double)": ElementKind.FLOAT64,
    "tensor(int16)": ElementKind.INT16,
    "tensor(int32)": ElementKind.INT32,
    "tensor(int64)": ElementKind.INT64,
    "tensor(uint16)": ElementKind.UINT16,
    "tensor(uint32)": ElementKind.UINT32,
    "tensor(uint64)": ElementKind.UINT64,
    "tensor(bool)": ElementKind.BOOL,
    "tensor(string)": ElementKind.TEXT,
}

_KIND_TO_NUMPY: Dict[ElementKind, np.dtype] = {
    ElementKind.FLOAT32: np.dtype(np.float32),
    ElementKind.FLOAT64: np.dtype(np.float64),
    ElementKind.INT16: np.dtype(np.int16),
    ElementKind.INT32: np.dtype(np.int32),
    ElementKind.INT64: np.dtype(np.int64),
    ElementKind.UINT16: np.dtype(np.uint16),
    ElementKind.UINT32: np.dtype(np.uint32),
    ElementKind.UINT64: np.dtype(np.uint64),
    ElementKind.BOOL: np.dtype(np.bool_),
    # onnxruntime accepts object arrays of str for string tensors
    ElementKind.TEXT: np.dtype(object),
}

_KIND_TO_ARROW: Dict[ElementKind, pa.DataType] = {
    ElementKind.FLOAT32: pa.float32(),
    ElementKind.FLOAT64: pa.float64(),
    ElementKind.INT16: pa.int16(),
    ElementKind.INT32: pa.int32(),
    ElementKind.INT64: pa.int64(),
    ElementKind.UINT16: pa.uint16(),
    ElementKind.UINT32: pa.uint32(),
    ElementKind.UINT64: pa.uint64(),
    ElementKind.BOOL: pa.bool_(),
    ElementKind.TEXT: pa.string(),
}

_ARROW_TO_KIND: Dict[pa.DataType, ElementKind] = {
    **{t: k for k, t in _KIND_TO_ARROW.items()},
    pa.large_string(): ElementKind.TEXT,
}

_NUMPY_TO_KIND: Dict[np.dtype, ElementKind] = {
    t: k for k, t in _KIND_TO_NUMPY.items() if k is not ElementKind.TEXT
}


# ============================================================
# Lookups
# ============================================================
def kind_from_onnx(type_str: str) -> ElementKind:
    try:
        return _ONNX_TO_KIND[type_str]
    except KeyError:
        raise UnsupportedType(f"ONNX element type not supported: {type_str}") from None


def kind_from_arrow(dtype: pa.DataType) -> ElementKind:
    try:
        return _ARROW_TO_KIND[dtype]
    except KeyError:
        raise UnsupportedType(f"Arrow type not supported: {dtype}") from None


def kind_from_numpy(dtype) -> ElementKind:
    dtype = np.dtype(dtype)
    if dtype.kind in ("U", "O"):
        return ElementKind.TEXT
    try:
        return _NUMPY_TO_KIND[dtype]
    except KeyError:
        raise UnsupportedType(f"numpy dtype not supported: {dtype}") from None


def to_numpy(kind: ElementKind) -> np.dtype:
    return _KIND_TO_NUMPY[kind]


def to_arrow(kind: ElementKind) -> pa.DataType:
    return _KIND_TO_ARROW[kind]


def supported_onnx_types() -> tuple[str, ...]:
    return tuple(_ONNX_TO_KIND)
