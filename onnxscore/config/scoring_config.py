#!filepath: onnxscore/config/scoring_config.py
from pydantic import BaseModel, field_validator


class ScoringConfig(BaseModel):
    model_path: str
    input_column: str
    output_column: str

    @field_validator("model_path", "input_column", "output_column")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be non-blank")
        return v
