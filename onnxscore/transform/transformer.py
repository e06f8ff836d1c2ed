#!filepath: onnxscore/transform/transformer.py
from __future__ import annotations

"""
OnnxTransformer

Binds one OnnxModel to (input column, output column).

Construction paths (named, no plugin dispatch):
    from_file(path, input, output)
    from_bytes(model_bytes, input, output)
    from_container(data)
"""

from pathlib import Path
from typing import Callable, Dict

import pyarrow as pa

from onnxscore import logs
from onnxscore.config.app_config import AppConfig
from onnxscore.config.model_config import ModelConfig
from onnxscore.data.row_source import ArrowRowSource
from onnxscore.data.schema import RowSchema
from onnxscore.engines.onnx_model import OnnxModel
from onnxscore.observability.instrumentation import Instrumentation
from onnxscore.transform import persistence
from onnxscore.transform.mapper import OnnxRowMapper, OutputColumn
from onnxscore.transform.row_mapper_transform import RowToRowMapperTransform
from onnxscore.utils.errors import ConfigurationError, SchemaMismatch


def _check_columns(input_column: str, output_column: str) -> None:
    if not input_column or not input_column.strip():
        raise ConfigurationError("[Transformer] input column name is blank")
    if not output_column or not output_column.strip():
        raise ConfigurationError("[Transformer] output column name is blank")


def _as_row_schema(schema: RowSchema | pa.Schema) -> RowSchema:
    return RowSchema(schema) if isinstance(schema, pa.Schema) else schema


class OnnxTransformer:

    def __init__(
        self,
        model: OnnxModel,
        input_column: str,
        output_column: str,
        *,
        inst: Instrumentation | None = None,
    ):
        _check_columns(input_column, output_column)
        self.model = model
        self.input_column = input_column
        self.output_column = output_column
        self.inst = inst

    # ==================================================
    # Construction
    # ==================================================
    @classmethod
    def from_file(
        cls,
        path: str | Path,
        input_column: str,
        output_column: str,
        *,
        config: ModelConfig | None = None,
        inst: Instrumentation | None = None,
    ) -> "OnnxTransformer":
        _check_columns(input_column, output_column)
        model = OnnxModel.from_file(path, config=config, inst=inst)
        return cls(model, input_column, output_column, inst=inst)

    @classmethod
    def from_bytes(
        cls,
        model_bytes: bytes,
        input_column: str,
        output_column: str,
        *,
        config: ModelConfig | None = None,
        inst: Instrumentation | None = None,
    ) -> "OnnxTransformer":
        _check_columns(input_column, output_column)
        model = OnnxModel.from_bytes(model_bytes, config=config, inst=inst)
        return cls(model, input_column, output_column, inst=inst)

    @classmethod
    def from_container(
        cls,
        data: bytes,
        *,
        config: ModelConfig | None = None,
        inst: Instrumentation | None = None,
    ) -> "OnnxTransformer":
        model, input_column, output_column = persistence.load(data, config=config)
        return cls(model, input_column, output_column, inst=inst)

    @classmethod
    def from_config(cls, cfg: AppConfig, *, inst: Instrumentation | None = None) -> "OnnxTransformer":
        return cls.from_file(
            cfg.scoring.model_path,
            cfg.scoring.input_column,
            cfg.scoring.output_column,
            config=cfg.model,
            inst=inst,
        )

    load = from_container

    @classmethod
    def load_from_file(cls, path: str | Path, *, config: ModelConfig | None = None) -> "OnnxTransformer":
        model, input_column, output_column = persistence.load_from_file(path, config=config)
        return cls(model, input_column, output_column)

    # ==================================================
    # Schema
    # ==================================================
    @property
    def inputs(self) -> tuple[str, ...]:
        return (self.input_column,)

    @property
    def outputs(self) -> tuple[str, ...]:
        return (self.output_column,)

    def output_column_info(self) -> OutputColumn:
        return OutputColumn.from_model(self.model, self.output_column)

    def make_row_mapper(self, schema: RowSchema | pa.Schema) -> OnnxRowMapper:
        return OnnxRowMapper(
            self.model, _as_row_schema(schema), self.input_column, self.output_column
        )

    def get_output_schema(self, schema: RowSchema | pa.Schema) -> pa.Schema:
        schema = _as_row_schema(schema)
        if schema.find(self.input_column) is None:
            raise SchemaMismatch(self.input_column, "input column does not exist", actual=schema.names)
        mapper = self.make_row_mapper(schema)
        return schema.arrow.append(mapper.output.arrow_field())

    # ==================================================
    # Transform
    # ==================================================
    def transform(self, source: ArrowRowSource | pa.Table) -> RowToRowMapperTransform:
        if isinstance(source, pa.Table):
            source = ArrowRowSource(source)
        mapper = self.make_row_mapper(source.schema)
        logs.info(
            f"[Transformer] {self.input_column} -> {self.output_column} "
            f"shape={mapper.output.shape} kind={mapper.output.kind.value}"
        )
        return RowToRowMapperTransform(source, mapper, inst=self.inst)

    # ==================================================
    # Persistence / lifecycle
    # ==================================================
    def save(self) -> bytes:
        return persistence.save(self.model, self.input_column, self.output_column)

    def save_to_file(self, path: str | Path) -> Path:
        return persistence.save_to_file(path, self.model, self.input_column, self.output_column)

    def close(self) -> None:
        self.model.close()

    def __enter__(self) -> "OnnxTransformer":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


CONSTRUCTORS: Dict[str, Callable[..., "OnnxTransformer"]] = {
    "from_file": OnnxTransformer.from_file,
    "from_bytes": OnnxTransformer.from_bytes,
    "from_container": OnnxTransformer.from_container,
    "from_config": OnnxTransformer.from_config,
}


def create_transformer(how: str, *args, **kwargs) -> OnnxTransformer:
    if how not in CONSTRUCTORS:
        available = ", ".join(CONSTRUCTORS)
        raise ConfigurationError(
            f"[Transformer] unknown construction path '{how}'. Available: {available}"
        )
    return CONSTRUCTORS[how](*args, **kwargs)
