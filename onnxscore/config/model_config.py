#!filepath: onnxscore/config/model_config.py
from pydantic import BaseModel, Field


class ModelConfig(BaseModel):
    """
    onnxruntime session options + staging policy for byte-constructed models.
    """
    providers: list[str] = Field(default_factory=lambda: ["CPUExecutionProvider"])
    intra_op_num_threads: int = 0      # 0 = onnxruntime default
    temp_dir: str | None = None        # None = system temp dir
    cleanup_staged: bool = True        # delete staged model dir on close()
