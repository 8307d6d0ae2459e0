"""
Base abstract interface for model-driven anomaly detection.

A model plugs into the last pass of the detection engine. It must implement:
- load(): Prepare the model from its artifact path
- detect(): Score one host's samples from the current window
"""

from abc import ABC, abstractmethod

from ..models import AnomalyRecord, MetricSample


class AnomalyModel(ABC):
    """Abstract base class for learned detection models"""

    @abstractmethod
    def load(self, model_path: str) -> None:
        """Load model parameters

        Args:
            model_path: Location of the serialized model, may be empty
        """
        pass

    @abstractmethod
    def detect(self, host: str, samples: list[MetricSample]) -> list[AnomalyRecord]:
        """Score the samples of one host

        Args:
            host: Host the samples belong to
            samples: The host's samples from the window snapshot, oldest first

        Returns:
            Anomaly records; the engine applies the score threshold afterwards
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name of the model"""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
