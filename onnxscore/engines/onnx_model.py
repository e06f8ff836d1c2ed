#!filepath: onnxscore/engines/onnx_model.py
from __future__ import annotations

"""
OnnxModel (FINAL / FROZEN)

Loads a serialized ONNX model and exposes:
- input / output node metadata (name, shape, element kind)
- run(tensors) -> tensors
- raw_bytes() for persistence

The inference session is opaque: given input tensors, return output tensors.
No caching, no locking around run(); onnxruntime sessions accept
concurrent run() calls.
"""

import weakref
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np
import onnxruntime as ort

from onnxscore import logs
from onnxscore.config.model_config import ModelConfig
from onnxscore.engines.element_types import ElementKind, kind_from_onnx, kind_from_numpy
from onnxscore.observability.instrumentation import Instrumentation, NoOpInstrumentation
from onnxscore.utils.errors import ConfigurationError, DecodeError, InferenceError
from onnxscore.utils.filesystem import FileSystem

# Symbolic ("batch", "N") or missing dims reported by onnxruntime
UNRESOLVED_DIM = -1

STAGED_MODEL_NAME = "model.onnx"


# ============================================================
# Node / Tensor (FROZEN)
# ============================================================
@dataclass(frozen=True)
class NodeInfo:
    name: str
    shape: tuple[int, ...]
    onnx_type: str

    @property
    def kind(self) -> ElementKind:
        """Raises UnsupportedType for element types outside the registry."""
        return kind_from_onnx(self.onnx_type)

    @classmethod
    def from_node_arg(cls, arg) -> "NodeInfo":
        shape = tuple(
            d if isinstance(d, int) and d > 0 else UNRESOLVED_DIM
            for d in (arg.shape or ())
        )
        return cls(name=arg.name, shape=shape, onnx_type=arg.type)


@dataclass(frozen=True)
class Tensor:
    """
    Dense tensor: element kind + shape + flat values.

    values may be a view over a reused buffer; do not keep it past the
    next call of whoever produced it.
    """
    kind: ElementKind
    shape: tuple[int, ...]
    values: np.ndarray

    @property
    def size(self) -> int:
        return int(np.prod(self.shape, dtype=np.int64)) if self.shape else 1

    def as_array(self) -> np.ndarray:
        return self.values.reshape(self.shape)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Tensor":
        arr = np.asarray(arr)
        return cls(
            kind=kind_from_numpy(arr.dtype),
            shape=tuple(int(d) for d in arr.shape),
            values=arr.reshape(-1),
        )


# ============================================================
# OnnxModel
# ============================================================
class OnnxModel:

    def __init__(
        self,
        model_file: str | Path,
        *,
        config: ModelConfig | None = None,
        inst: Instrumentation | None = None,
        staged_dir: Path | None = None,
    ):
        self.config = config or ModelConfig()
        self.inst = inst if inst is not None else NoOpInstrumentation()
        self.model_file = Path(model_file)
        self.staged_dir = staged_dir
        self._closed = False

        # staged dir 由 handle 持有；GC 时兜底回收
        self._finalizer = None
        if staged_dir is not None and self.config.cleanup_staged:
            self._finalizer = weakref.finalize(self, FileSystem.remove, staged_dir)

        with self.inst.timer("onnx.load"):
            self._session = self._open_session()

        self.input_nodes: tuple[NodeInfo, ...] = tuple(
            NodeInfo.from_node_arg(a) for a in self._session.get_inputs()
        )
        self.output_nodes: tuple[NodeInfo, ...] = tuple(
            NodeInfo.from_node_arg(a) for a in self._session.get_outputs()
        )

        if not self.input_nodes:
            raise ConfigurationError(f"[OnnxModel] model has no inputs: {self.model_file}")
        if not self.output_nodes:
            raise ConfigurationError(f"[OnnxModel] model has no outputs: {self.model_file}")

        logs.info(
            f"[OnnxModel] loaded {self.model_file.name} "
            f"inputs={[(n.name, n.shape, n.onnx_type) for n in self.input_nodes]} "
            f"outputs={[(n.name, n.shape, n.onnx_type) for n in self.output_nodes]}"
        )

    # --------------------------------------------------
    def _open_session(self) -> ort.InferenceSession:
        opts = ort.SessionOptions()
        if self.config.intra_op_num_threads:
            opts.intra_op_num_threads = self.config.intra_op_num_threads

        try:
            return ort.InferenceSession(
                str(self.model_file),
                sess_options=opts,
                providers=list(self.config.providers),
            )
        except Exception as e:
            raise DecodeError(
                f"[OnnxModel] cannot load model {self.model_file}: {e}"
            ) from e

    # ==================================================
    # Construction paths
    # ==================================================
    @classmethod
    def from_file(
        cls,
        path: str | Path | None,
        *,
        config: ModelConfig | None = None,
        inst: Instrumentation | None = None,
    ) -> "OnnxModel":
        if path is None or not str(path).strip():
            raise ConfigurationError("[OnnxModel] model path is blank")

        p = Path(path)
        if not p.is_file():
            raise ConfigurationError(f"[OnnxModel] model file not found: {p}")

        return cls(p, config=config, inst=inst)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        *,
        config: ModelConfig | None = None,
        inst: Instrumentation | None = None,
    ) -> "OnnxModel":
        """
        Stage bytes to <temp_dir>/<uuid4>/model.onnx, then load from path.
        """
        if not data:
            raise ConfigurationError("[OnnxModel] model bytes are empty")

        config = config or ModelConfig()
        model_file = FileSystem.stage_bytes(
            bytes(data), STAGED_MODEL_NAME, base_dir=config.temp_dir
        )
        try:
            return cls(model_file, config=config, inst=inst, staged_dir=model_file.parent)
        except Exception:
            if config.cleanup_staged:
                FileSystem.remove(model_file.parent)
            raise

    @classmethod
    def load(cls, source: str | Path | bytes, **kwargs) -> "OnnxModel":
        if isinstance(source, (bytes, bytearray, memoryview)):
            return cls.from_bytes(bytes(source), **kwargs)
        return cls.from_file(source, **kwargs)

    # ==================================================
    # Metadata
    # ==================================================
    @property
    def input_names(self) -> list[str]:
        return [n.name for n in self.input_nodes]

    @property
    def output_names(self) -> list[str]:
        return [n.name for n in self.output_nodes]

    # ==================================================
    # Inference
    # ==================================================
    def run(self, tensors: Sequence[Tensor]) -> list[Tensor]:
        """
        Feed tensors positionally to the declared inputs; return every
        declared output in order.
        """
        if self._closed:
            raise InferenceError("[OnnxModel] run() on a closed model")
        if len(tensors) > len(self.input_nodes):
            raise InferenceError(
                f"[OnnxModel] got {len(tensors)} tensors for "
                f"{len(self.input_nodes)} inputs"
            )

        feeds = {
            node.name: t.as_array()
            for node, t in zip(self.input_nodes, tensors)
        }

        try:
            outputs = self._session.run(None, feeds)
        except Exception as e:
            shapes = {name: arr.shape for name, arr in feeds.items()}
            raise InferenceError(
                f"[OnnxModel] inference failed for inputs {shapes}: {e}"
            ) from e

        results = []
        for node, out in zip(self.output_nodes, outputs):
            if not isinstance(out, np.ndarray):
                raise InferenceError(
                    f"[OnnxModel] output '{node.name}' is not a tensor "
                    f"({type(out).__name__})"
                )
            results.append(Tensor.from_array(out))
        return results

    # ==================================================
    # Persistence / lifecycle
    # ==================================================
    def raw_bytes(self) -> bytes:
        if self._closed:
            raise ConfigurationError("[OnnxModel] raw_bytes() on a closed model")
        return self.model_file.read_bytes()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Release the session; delete the staged directory when this handle
        owns one. Idempotent.
        """
        if self._closed:
            return
        self._closed = True
        self._session = None
        if self._finalizer is not None:
            self._finalizer()
            logs.debug(f"[OnnxModel] staged dir removed: {self.staged_dir}")

    def __enter__(self) -> "OnnxModel":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
