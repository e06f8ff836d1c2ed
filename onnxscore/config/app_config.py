#!filepath: onnxscore/config/app_config.py
import os

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .log_config import LogConfig
from .model_config import ModelConfig
from .scoring_config import ScoringConfig


def project_root() -> str:
    """
    onnxscore/config/app_config.py → onnxscore/config → onnxscore → project_root
    """
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "../../"))


class AppConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    scoring: ScoringConfig

    @classmethod
    def load(cls, path: str | None = None) -> "AppConfig":
        """
        加载 YAML 配置 + .env
        - path 为空时使用环境变量 ONNXSCORE_CONFIG
        - ONNXSCORE_MODEL_PATH 覆盖 scoring.model_path
        """
        load_dotenv(os.path.join(project_root(), ".env"))

        if path is None:
            path = os.getenv("ONNXSCORE_CONFIG")
        if path is None:
            raise FileNotFoundError(
                "No config path given and ONNXSCORE_CONFIG is not set"
            )
        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        model_path = os.getenv("ONNXSCORE_MODEL_PATH")
        if model_path:
            raw.setdefault("scoring", {})["model_path"] = model_path

        return cls(**raw)
