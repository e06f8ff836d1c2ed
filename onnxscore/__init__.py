#!filepath: onnxscore/__init__.py

from .utils.logger import Logging, logs
from .utils.errors import (
    OnnxScoringError,
    ConfigurationError,
    SchemaMismatch,
    DecodeError,
    InferenceError,
    UnsupportedType,
)
from .utils.filesystem import FileSystem
from .config.app_config import AppConfig

from .engines.element_types import ElementKind
from .engines.onnx_model import NodeInfo, OnnxModel, Tensor, UNRESOLVED_DIM
from .data.row_source import ArrowRowSource, RowCursor, VectorValue
from .data.schema import ColumnType, RowSchema, SchemaShape, VectorKind, sparse_vector_field
from .transform.tensor_adapter import TensorAdapter
from .transform.mapper import OnnxRowMapper, OutputBuffer, OutputColumn
from .transform.transformer import OnnxTransformer, create_transformer
from .transform.estimator import OnnxEstimator

# alias 简化调用
fs = FileSystem

__all__ = [
    "logs", "Logging",
    "fs",
    "AppConfig",
    "OnnxScoringError", "ConfigurationError", "SchemaMismatch",
    "DecodeError", "InferenceError", "UnsupportedType",
    "ElementKind", "NodeInfo", "OnnxModel", "Tensor", "UNRESOLVED_DIM",
    "ArrowRowSource", "RowCursor", "VectorValue",
    "ColumnType", "RowSchema", "SchemaShape", "VectorKind", "sparse_vector_field",
    "TensorAdapter",
    "OnnxRowMapper", "OutputBuffer", "OutputColumn",
    "OnnxTransformer", "create_transformer",
    "OnnxEstimator",
]
