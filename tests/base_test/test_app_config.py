#!filepath: tests/base_test/test_app_config.py
import pytest
import yaml
from pydantic import ValidationError

from onnxscore.config import AppConfig
from onnxscore.config.log_config import LogConfig
from onnxscore.config.model_config import ModelConfig
from onnxscore.config.scoring_config import ScoringConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("ONNXSCORE_MODEL_PATH", raising=False)
    monkeypatch.delenv("ONNXSCORE_CONFIG", raising=False)


@pytest.fixture
def sample_config_file(tmp_path):
    """
    创建临时 YAML 配置文件用于测试，
    pytest 会自动清理该目录。
    """
    data = {
        "log": {
            "dir": "logs",
            "rotation": "1 day",
            "retention": "30 days",
            "level": "DEBUG",
        },
        "model": {
            "providers": ["CPUExecutionProvider"],
            "intra_op_num_threads": 2,
            "temp_dir": str(tmp_path / "staging"),
        },
        "scoring": {
            "model_path": "models/squeezenet.onnx",
            "input_column": "data_0",
            "output_column": "softmaxout_1",
        },
    }

    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump(data), encoding="utf-8")
    return config_file


def test_app_config_load(sample_config_file):
    """测试 AppConfig 是否能正确加载 YAML"""
    cfg = AppConfig.load(path=str(sample_config_file))

    assert isinstance(cfg, AppConfig)
    assert isinstance(cfg.log, LogConfig)
    assert isinstance(cfg.model, ModelConfig)
    assert isinstance(cfg.scoring, ScoringConfig)


def test_log_config_values(sample_config_file):
    cfg = AppConfig.load(path=str(sample_config_file))
    assert cfg.log.level == "DEBUG"
    assert cfg.log.dir == "logs"


def test_model_config_values(sample_config_file):
    cfg = AppConfig.load(path=str(sample_config_file))

    assert cfg.model.intra_op_num_threads == 2
    assert cfg.model.providers == ["CPUExecutionProvider"]
    assert cfg.model.cleanup_staged is True


def test_scoring_config_values(sample_config_file):
    cfg = AppConfig.load(path=str(sample_config_file))

    assert cfg.scoring.input_column == "data_0"
    assert cfg.scoring.output_column == "softmaxout_1"


def test_model_path_env_override(sample_config_file, monkeypatch):
    monkeypatch.setenv("ONNXSCORE_MODEL_PATH", "/opt/models/other.onnx")
    cfg = AppConfig.load(path=str(sample_config_file))

    assert cfg.scoring.model_path == "/opt/models/other.onnx"


def test_config_path_from_env(sample_config_file, monkeypatch):
    monkeypatch.setenv("ONNXSCORE_CONFIG", str(sample_config_file))
    cfg = AppConfig.load()

    assert cfg.scoring.input_column == "data_0"


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        AppConfig.load(path=str(tmp_path / "nope.yaml"))

    with pytest.raises(FileNotFoundError):
        AppConfig.load()


def test_missing_scoring_section_should_fail(tmp_path):
    """缺少 scoring 段时，AppConfig 应该抛出 ValidationError"""
    bad_file = tmp_path / "bad.yaml"
    bad_file.write_text(yaml.safe_dump({"log": {"dir": "logs"}}))

    with pytest.raises(ValidationError):
        AppConfig.load(path=str(bad_file))


def test_blank_column_should_fail(tmp_path):
    bad_file = tmp_path / "bad.yaml"
    bad_file.write_text(
        yaml.safe_dump(
            {"scoring": {"model_path": "m.onnx", "input_column": " ", "output_column": "y"}}
        )
    )

    with pytest.raises(ValidationError):
        AppConfig.load(path=str(bad_file))
