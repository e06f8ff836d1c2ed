#!filepath: onnxscore/observability/metrics.py
from dataclasses import dataclass, field
from typing import Dict

from onnxscore import logs


@dataclass
class MetricRecorder:
    enabled: bool = True
    counters: Dict[str, int] = field(default_factory=dict)

    def incr(self, name: str, value: int = 1):
        if not self.enabled:
            return
        self.counters[name] = self.counters.get(name, 0) + value

    def report(self):
        for name, value in self.counters.items():
            logs.info(f"[Metric] {name} = {value}")
