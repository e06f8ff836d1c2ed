#!filepath: onnxscore/transform/estimator.py
from __future__ import annotations

"""
OnnxEstimator + schema reconciliation.

Two-phase validation:
    1. get_output_schema(SchemaShape) : declared shape only
         - input column exists
         - input column is a vector (fixed or variable length)
    2. fit(source) : concrete schema
         - element kind / vector length / resolved tensor shape
           (TensorAdapter construction)
"""

from pathlib import Path

import pyarrow as pa

from onnxscore.config.model_config import ModelConfig
from onnxscore.data.row_source import ArrowRowSource
from onnxscore.data.schema import SchemaShape, VectorKind
from onnxscore.transform.transformer import OnnxTransformer
from onnxscore.utils.errors import SchemaMismatch


def reconcile_input(shape: SchemaShape, input_column: str) -> None:
    col = shape.find(input_column)
    if col is None:
        raise SchemaMismatch(input_column, "input column does not exist", actual=shape.names)
    if col.vector_kind not in (VectorKind.VECTOR, VectorKind.VARIABLE_VECTOR):
        raise SchemaMismatch(
            input_column,
            "input column must be a vector",
            expected="vector",
            actual=col.describe(),
        )


class OnnxEstimator:
    """
    Trivial estimator: the model is pre-trained, fit() only binds and
    validates the concrete schema.
    """

    def __init__(self, transformer: OnnxTransformer):
        self.transformer = transformer

    @classmethod
    def from_file(
        cls,
        model_file: str | Path,
        input_column: str,
        output_column: str,
        *,
        config: ModelConfig | None = None,
    ) -> "OnnxEstimator":
        return cls(OnnxTransformer.from_file(model_file, input_column, output_column, config=config))

    def get_output_schema(self, shape: SchemaShape) -> SchemaShape:
        for input_column in self.transformer.inputs:
            reconcile_input(shape, input_column)
        return shape.with_column(self.transformer.output_column_info().shape_column())

    def fit(self, source: ArrowRowSource | pa.Table) -> OnnxTransformer:
        if isinstance(source, pa.Table):
            source = ArrowRowSource(source)
        self.transformer.make_row_mapper(source.schema)
        return self.transformer
