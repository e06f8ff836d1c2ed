#!filepath: onnxscore/transform/row_mapper_transform.py
from __future__ import annotations

"""
RowToRowMapperTransform

Generic host for OnnxRowMapper:
- schema = input schema + one output column (appended last)
- cursor(active) only reads the input column when the output is active
- the output getter is created lazily, per cursor
"""

from typing import Callable, Iterable

import numpy as np
import pyarrow as pa

from onnxscore import logs
from onnxscore.data.row_source import ArrowRowSource, RowCursor
from onnxscore.engines.element_types import to_numpy
from onnxscore.observability.instrumentation import Instrumentation, NoOpInstrumentation
from onnxscore.transform.mapper import OnnxRowMapper, OutputBuffer
from onnxscore.utils.errors import ConfigurationError


class MappedCursor:

    def __init__(self, parent: "RowToRowMapperTransform", active: set[int]):
        self.parent = parent
        self.active = frozenset(active)
        self.output_active = parent.output_index in self.active

        mapper = parent.mapper
        deps = mapper.column_dependencies(lambda i: self.output_active)
        n_inputs = parent.output_index
        input_active = {
            i for i in range(n_inputs) if i in self.active or deps(i)
        }
        self.input = parent.source.cursor(input_active)
        self._output_getter = None

    @property
    def position(self) -> int:
        return self.input.position

    def move_next(self) -> bool:
        return self.input.move_next()

    def is_active(self, col: int) -> bool:
        return col in self.active

    def get_getter(self, col: int) -> Callable:
        """
        Input columns: getter() -> value.
        Output column: getter(dst: OutputBuffer) -> None.
        """
        if col != self.parent.output_index:
            if col not in self.active:
                raise ConfigurationError(f"column {col} is not active in this cursor")
            return self.input.get_getter(col)

        if not self.output_active:
            raise ConfigurationError(
                f"output column '{self.parent.mapper.output.name}' is not active"
            )
        if self._output_getter is None:
            self._output_getter = self.parent.mapper.create_getter(self.input)
        return self._output_getter


class RowToRowMapperTransform:

    def __init__(
        self,
        source: ArrowRowSource,
        mapper: OnnxRowMapper,
        inst: Instrumentation | None = None,
    ):
        self.source = source
        self.mapper = mapper
        self.inst = inst if inst is not None else NoOpInstrumentation()
        self.output_index = len(source.schema)

    @property
    def schema(self) -> pa.Schema:
        return self.source.schema.arrow.append(self.mapper.output.arrow_field())

    def cursor(self, active: Callable[[int], bool] | Iterable[int] | None = None) -> MappedCursor:
        n = self.output_index + 1
        if active is None:
            cols = set(range(n))
        elif callable(active):
            cols = {i for i in range(n) if active(i)}
        else:
            cols = set(active)
        return MappedCursor(self, cols)

    def score(self) -> list[np.ndarray]:
        """Run the output getter over every row; one array per row."""
        cursor = self.cursor([self.output_index])
        getter = cursor.get_getter(self.output_index)
        buf = OutputBuffer()
        rows = []

        with self.inst.timer("onnx.score"):
            while cursor.move_next():
                getter(buf)
                rows.append(buf.array.copy())

        self.inst.metrics.incr("onnx.rows", len(rows))
        logs.debug(f"[Transformer] scored {len(rows)} rows -> {self.mapper.output.name}")
        return rows

    @logs.catch()
    def to_table(self) -> pa.Table:
        """Input table + the materialised output column."""
        field = self.mapper.output.arrow_field()
        rows = self.score()

        if pa.types.is_fixed_size_list(field.type):
            size = field.type.list_size
            dtype = to_numpy(self.mapper.output.kind)
            flat = np.concatenate(rows) if rows else np.empty(0, dtype=dtype)
            child = pa.array(flat, type=field.type.value_type)
            column = pa.FixedSizeListArray.from_arrays(child, size)
        else:
            column = pa.array([r.tolist() for r in rows], type=field.type)

        return self.source.table.append_column(field, column)
