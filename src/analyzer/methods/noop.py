"""
Placeholder model used until a trained model is wired in.
"""

import structlog

from ..models import AnomalyRecord, MetricSample
from .base import AnomalyModel

logger = structlog.get_logger(__name__)


class NoopModel(AnomalyModel):
    """Accepts any model path and never reports anomalies"""

    def __init__(self):
        self.model_path = ""

    @property
    def name(self) -> str:
        return "noop"

    def load(self, model_path: str) -> None:
        self.model_path = model_path
        logger.info("Placeholder model loaded, ML pass will report nothing", model_path=model_path)

    def detect(self, host: str, samples: list[MetricSample]) -> list[AnomalyRecord]:
        return []
