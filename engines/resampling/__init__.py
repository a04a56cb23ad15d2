"""
Resamplers, looked up by name the same way as encoders.

    resampler = get_resampler("pillow", {'filter': 'lanczos'})
"""

from typing import Dict, Callable
from .base import Resampler

# name -> factory(config)
RESAMPLER_REGISTRY: Dict[str, Callable[[dict], Resampler]] = {}


def register_resampler(name: str):
    """Class decorator: register factory_class.create under name."""
    def decorator(factory_class):
        RESAMPLER_REGISTRY[name] = factory_class.create
        return factory_class
    return decorator


def get_resampler(name: str, config: dict) -> Resampler:
    """
    Build the resampler registered as name.

    Raises:
        ValueError: If nothing is registered under name
    """
    if name not in RESAMPLER_REGISTRY:
        available = ', '.join(RESAMPLER_REGISTRY.keys()) if RESAMPLER_REGISTRY else 'none'
        raise ValueError(
            f"Unknown resampler: '{name}'. "
            f"Available resamplers: {available}"
        )
    return RESAMPLER_REGISTRY[name](config)


from . import pillow  # noqa: E402,F401
