#!filepath: onnxscore/transform/persistence.py
from __future__ import annotations

"""
Persisted container codec (FROZEN)

Layout (little-endian):
    signature         8 bytes  b"ONNXSCOR"
    version_written   u32
    version_readable  u32      oldest reader version able to read this
    version_floor     u32      oldest container version the writer can read
    model             u32 len + bytes
    input_column      u32 len + utf-8 (non-empty)
    output_column     u32 len + utf-8 (non-empty)

Reader rules:
    version_written  <  READ_FLOOR       -> DecodeError (too old)
    version_readable >  VERSION_WRITTEN  -> DecodeError (needs newer reader)
"""

import struct
from dataclasses import dataclass
from pathlib import Path

from onnxscore import logs
from onnxscore.config.model_config import ModelConfig
from onnxscore.engines.onnx_model import OnnxModel
from onnxscore.utils.errors import ConfigurationError, DecodeError
from onnxscore.utils.filesystem import FileSystem

SIGNATURE = b"ONNXSCOR"
VERSION_WRITTEN = 0x00010001   # initial
VERSION_READABLE = 0x00010001
READ_FLOOR = 0x00010001

_HEADER = struct.Struct("<8sIII")
_LEN = struct.Struct("<I")


@dataclass(frozen=True)
class PersistedContainer:
    model_bytes: bytes
    input_column: str
    output_column: str
    version_written: int = VERSION_WRITTEN
    version_readable: int = VERSION_READABLE
    version_floor: int = READ_FLOOR


# ============================================================
# Encode
# ============================================================
def _check_name(name: str, what: str) -> str:
    if not name or not name.strip():
        raise ConfigurationError(f"[Codec] {what} column name is blank")
    return name


def encode(container: PersistedContainer) -> bytes:
    _check_name(container.input_column, "input")
    _check_name(container.output_column, "output")

    parts = [
        _HEADER.pack(
            SIGNATURE,
            container.version_written,
            container.version_readable,
            container.version_floor,
        )
    ]
    for blob in (
        container.model_bytes,
        container.input_column.encode("utf-8"),
        container.output_column.encode("utf-8"),
    ):
        parts.append(_LEN.pack(len(blob)))
        parts.append(blob)
    return b"".join(parts)


# ============================================================
# Decode
# ============================================================
class _Reader:

    def __init__(self, data: bytes):
        self.view = memoryview(data)
        self.pos = 0

    def take(self, n: int, what: str) -> bytes:
        end = self.pos + n
        if end > len(self.view):
            raise DecodeError(
                f"[Codec] truncated container: {what} needs {n} bytes at "
                f"offset {self.pos}, {len(self.view) - self.pos} left"
            )
        chunk = self.view[self.pos:end].tobytes()
        self.pos = end
        return chunk

    def blob(self, what: str) -> bytes:
        (n,) = _LEN.unpack(self.take(_LEN.size, f"{what} length"))
        return self.take(n, what)

    def text(self, what: str) -> str:
        raw = self.blob(what)
        try:
            value = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"[Codec] {what} is not valid utf-8") from e
        if not value.strip():
            raise DecodeError(f"[Codec] {what} is empty")
        return value


def decode(data: bytes) -> PersistedContainer:
    reader = _Reader(data)
    signature, written, readable, floor = _HEADER.unpack(
        reader.take(_HEADER.size, "header")
    )

    if signature != SIGNATURE:
        raise DecodeError(
            f"[Codec] bad signature {signature!r}, expected {SIGNATURE!r}"
        )
    if written < READ_FLOOR:
        raise DecodeError(
            f"[Codec] container version {written:#010x} is older than "
            f"the oldest readable version {READ_FLOOR:#010x}"
        )
    if readable > VERSION_WRITTEN:
        raise DecodeError(
            f"[Codec] container requires reader version {readable:#010x}, "
            f"this reader is {VERSION_WRITTEN:#010x}"
        )

    model_bytes = reader.blob("model")
    input_column = reader.text("input column")
    output_column = reader.text("output column")

    return PersistedContainer(
        model_bytes=model_bytes,
        input_column=input_column,
        output_column=output_column,
        version_written=written,
        version_readable=readable,
        version_floor=floor,
    )


# ============================================================
# Model-level save / load
# ============================================================
def save(model: OnnxModel, input_column: str, output_column: str) -> bytes:
    data = encode(
        PersistedContainer(
            model_bytes=model.raw_bytes(),
            input_column=input_column,
            output_column=output_column,
        )
    )
    logs.debug(f"[Codec] saved container {len(data)} bytes ({input_column} -> {output_column})")
    return data


def load(
    data: bytes,
    *,
    config: ModelConfig | None = None,
) -> tuple[OnnxModel, str, str]:
    container = decode(data)
    model = OnnxModel.from_bytes(container.model_bytes, config=config)
    logs.debug(
        f"[Codec] loaded container v{container.version_written:#010x} "
        f"({container.input_column} -> {container.output_column})"
    )
    return model, container.input_column, container.output_column


def save_to_file(path: str | Path, model: OnnxModel, input_column: str, output_column: str) -> Path:
    path = Path(path)
    FileSystem.safe_write(path, save(model, input_column, output_column))
    return path


@logs.catch()
def load_from_file(path: str | Path, *, config: ModelConfig | None = None) -> tuple[OnnxModel, str, str]:
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"[Codec] container file not found: {path}")
    return load(path.read_bytes(), config=config)
