"""
Model registry for the ML detection pass.
"""

from .base import AnomalyModel
from .noop import NoopModel

# Registry of available models
METHOD_REGISTRY = {
    "noop": NoopModel,
}


def get_model(name: str, model_path: str = "") -> AnomalyModel:
    """Factory to create and load a detection model

    Args:
        name: Registry name of the model (e.g., 'noop')
        model_path: Artifact location handed to the model's load()

    Returns:
        Loaded model instance

    Raises:
        ValueError: If name is not registered
    """
    if name not in METHOD_REGISTRY:
        available = ", ".join(METHOD_REGISTRY.keys())
        raise ValueError(f"Unknown model '{name}'. Available models: {available}")

    model = METHOD_REGISTRY[name]()
    model.load(model_path)
    return model


def list_models() -> list[str]:
    """List all registered models"""
    return list(METHOD_REGISTRY.keys())


__all__ = [
    "AnomalyModel",
    "NoopModel",
    "METHOD_REGISTRY",
    "get_model",
    "list_models",
]
