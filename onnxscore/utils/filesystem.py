#!filepath: onnxscore/utils/filesystem.py
import shutil
import tempfile
import uuid
from pathlib import Path

from onnxscore import logs


class FileSystem:
    """
    统一文件系统工具
    - 自动创建目录
    - 安全写入文件（临时文件 → rename）
    - 私有临时目录（模型 bytes 落盘）
    - 删除文件/目录
    """

    @staticmethod
    def ensure_dir(path: str | Path) -> Path:
        """
        创建目录（如果不存在）
        """
        p = Path(path)
        if not p.exists():
            p.mkdir(parents=True, exist_ok=True)
            logs.debug(f"[FS] 创建目录: {p}")
        return p

    @staticmethod
    def get_file_size(path: str | Path) -> int:
        p = Path(path)
        if not p.exists():
            return 0
        return p.stat().st_size

    @staticmethod
    def safe_write(path: str | Path, data: bytes) -> None:
        """
        原子写入（避免部分写入导致文件损坏）
            1) 先写入 tmp 文件
            2) replace → 正式文件
        """
        path = Path(path)
        FileSystem.ensure_dir(path.parent)

        tmp_path = path.with_name(path.name + ".tmp")

        with open(tmp_path, "wb") as f:
            f.write(data)
            logs.debug(f"[FS] 写入临时文件: {tmp_path}")

        tmp_path.replace(path)
        logs.debug(f"[FS] 原子写入完成: {path}")

    @staticmethod
    def stage_bytes(
        data: bytes,
        filename: str,
        base_dir: str | Path | None = None,
    ) -> Path:
        """
        将 bytes 写入一个唯一命名的私有目录：
            <base_dir or system tmp>/<uuid4>/<filename>

        返回文件路径；目录由调用方负责回收。
        """
        root = Path(base_dir) if base_dir is not None else Path(tempfile.gettempdir())
        stage_dir = root / uuid.uuid4().hex
        stage_dir.mkdir(parents=True, exist_ok=False)

        target = stage_dir / filename
        target.write_bytes(data)
        logs.debug(f"[FS] staged {len(data)} bytes -> {target}")
        return target

    @staticmethod
    def remove(path: str | Path) -> None:
        """
        安全删除文件/目录
        """
        p = Path(path)

        if not p.exists():
            logs.debug(f"[FS] 路径不存在，无需删除: {p}")
            return

        if p.is_dir():
            shutil.rmtree(p)
            logs.debug(f"[FS] 删除目录: {p}")
        else:
            p.unlink()
            logs.debug(f"[FS] 删除文件: {p}")
