from .app_config import AppConfig
from .log_config import LogConfig
from .model_config import ModelConfig
from .scoring_config import ScoringConfig

__all__ = ["AppConfig", "LogConfig", "ModelConfig", "ScoringConfig"]
