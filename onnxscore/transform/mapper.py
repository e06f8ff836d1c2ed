#!filepath: onnxscore/transform/mapper.py
from __future__ import annotations

"""
OnnxRowMapper

Presents the model's first output as one extra column:
- output_schema()   : name / element kind / shape (batch dim dropped)
- dependencies()    : input column needed iff the output is requested
- create_getter()   : per-cursor getter, one inference per call

Only the first model input and the first model output are bound.
"""

import math
from dataclasses import dataclass
from typing import Callable

import numpy as np
import pyarrow as pa

from onnxscore import logs
from onnxscore.data.row_source import RowCursor
from onnxscore.data.schema import RowSchema, SchemaShapeColumn, VectorKind
from onnxscore.engines.element_types import ElementKind, to_arrow, to_numpy
from onnxscore.engines.onnx_model import UNRESOLVED_DIM, OnnxModel, Tensor
from onnxscore.transform.tensor_adapter import TensorAdapter
from onnxscore.utils.errors import InferenceError

SHAPE_METADATA_KEY = b"shape"


@dataclass(frozen=True)
class OutputColumn:
    name: str
    kind: ElementKind
    shape: tuple[int, ...]

    @property
    def size(self) -> int:
        """Flat length; 0 when any dimension is unresolved or shape is empty."""
        if not self.shape or UNRESOLVED_DIM in self.shape:
            return 0
        return math.prod(self.shape)

    @property
    def vector_kind(self) -> VectorKind:
        return VectorKind.VECTOR if self.size else VectorKind.VARIABLE_VECTOR

    def arrow_field(self) -> pa.Field:
        item = to_arrow(self.kind)
        dtype = pa.list_(item, self.size) if self.size else pa.list_(item)
        return pa.field(
            self.name,
            dtype,
            metadata={SHAPE_METADATA_KEY: ",".join(str(d) for d in self.shape).encode()},
        )

    def shape_column(self) -> SchemaShapeColumn:
        return SchemaShapeColumn(self.name, self.vector_kind, to_arrow(self.kind))

    @classmethod
    def from_model(cls, model: OnnxModel, name: str) -> "OutputColumn":
        """First output node, leading (batch) dimension dropped."""
        node = model.output_nodes[0]
        return cls(name=name, kind=node.kind, shape=tuple(node.shape[1:]))


class OutputBuffer:
    """
    Reusable destination for getter output.

    values has capacity >= length; only values[:length] is meaningful.
    Grows when a result does not fit, never shrinks.
    """

    def __init__(self, values: np.ndarray | None = None):
        self.values = values if values is not None else np.empty(0)
        self.length = 0

    def write(self, src: np.ndarray, dtype: np.dtype) -> None:
        n = src.shape[0]
        if self.values.shape[0] < n or self.values.dtype != dtype:
            self.values = np.empty(max(n, self.values.shape[0]), dtype=dtype)
        self.values[:n] = src
        self.length = n

    @property
    def array(self) -> np.ndarray:
        return self.values[: self.length]


def run_single(model: OnnxModel, tensor: Tensor) -> Tensor:
    """One input tensor in, first output tensor out."""
    outputs = model.run([tensor])
    if not outputs:
        raise InferenceError("[Mapper] model returned no outputs")
    return outputs[0]


class OnnxRowMapper:

    def __init__(
        self,
        model: OnnxModel,
        schema: RowSchema,
        input_column: str,
        output_column: str,
    ):
        self.model = model
        self.schema = schema

        if len(model.input_nodes) > 1 or len(model.output_nodes) > 1:
            logs.warning(
                f"[Mapper] model declares {len(model.input_nodes)} inputs / "
                f"{len(model.output_nodes)} outputs; only the first of each is bound"
            )

        # 校验在构造时完成（fail fast）
        self.adapter = TensorAdapter(schema, input_column, model.input_nodes[0])

        self.output = OutputColumn.from_model(model, output_column)
        self._dtype = to_numpy(self.output.kind)

    # --------------------------------------------------
    def output_schema(self) -> OutputColumn:
        return self.output

    def dependencies(self, output_active: bool) -> bool:
        return bool(output_active)

    def column_dependencies(self, output_active: Callable[[int], bool]) -> Callable[[int], bool]:
        """Predicate over input column indices, given activity of output 0."""
        needed = output_active(0)
        col = self.adapter.column_index
        return lambda i: needed and i == col

    # --------------------------------------------------
    def create_getter(self, cursor: RowCursor) -> Callable[[OutputBuffer], None]:
        """
        getter(dst): run inference for the cursor's current row and copy the
        first output into dst.

        No memoization: calling twice on the same row runs inference twice.
        """
        extractor = self.adapter.bind(cursor)
        model = self.model
        dtype = self._dtype
        expected = self.output.size

        def getter(dst: OutputBuffer) -> None:
            result = run_single(model, extractor.produce_tensor())
            if expected and result.values.shape[0] != expected:
                raise InferenceError(
                    f"[Mapper] output '{self.output.name}' has {result.values.shape[0]} "
                    f"values, declared shape {self.output.shape}"
                )
            dst.write(result.values, dtype)

        return getter
