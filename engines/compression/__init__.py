"""
Lossy encoders, looked up by name.

An encoder module registers a factory class whose create(config) builds
the encoder; the pipeline asks for it by the name used in config.json:

    encoder = get_encoder("jpeg", config['encoders']['jpeg'])
"""

from typing import Dict, Callable
from .base import LossyEncoder

# name -> factory(config)
ENCODER_REGISTRY: Dict[str, Callable[[dict], LossyEncoder]] = {}


def register_encoder(name: str):
    """Class decorator: register factory_class.create under name."""
    def decorator(factory_class):
        ENCODER_REGISTRY[name] = factory_class.create
        return factory_class
    return decorator


def get_encoder(name: str, config: dict) -> LossyEncoder:
    """
    Build the encoder registered as name.

    Raises:
        ValueError: If nothing is registered under name
    """
    if name not in ENCODER_REGISTRY:
        available = ', '.join(ENCODER_REGISTRY.keys()) if ENCODER_REGISTRY else 'none'
        raise ValueError(
            f"Unknown encoder: '{name}'. "
            f"Available encoders: {available}"
        )
    return ENCODER_REGISTRY[name](config)


from . import jpeg  # noqa: E402,F401
