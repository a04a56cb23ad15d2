"""
Pillow resampling engine for Shrinkray

Uses Image.resize with a configurable reconstruction filter.
Lanczos gives the best quality for downscaling and is the default.
"""

from typing import Optional
from PIL import Image

from utilities import Print
from . import register_resampler

FILTERS = {
    'nearest': Image.Resampling.NEAREST,
    'box': Image.Resampling.BOX,
    'bilinear': Image.Resampling.BILINEAR,
    'hamming': Image.Resampling.HAMMING,
    'bicubic': Image.Resampling.BICUBIC,
    'lanczos': Image.Resampling.LANCZOS,
}


@register_resampler("pillow")
class PillowResamplerFactory:
    """Factory for creating Pillow resampler instances."""

    @staticmethod
    def create(config: dict) -> "PillowResampler":
        return PillowResampler(config)


class PillowResampler:
    """
    High-quality resampling through Pillow.

    Attributes:
        filter_name: Key into FILTERS
        reducing_gap: Optional Pillow reducing_gap for faster large downscales
    """

    def __init__(self, config: dict):
        """
        Args:
            config: Configuration dictionary with optional keys:
                - filter: str - one of FILTERS (default: 'lanczos')
                - reducing_gap: float or None (default: None)

        Raises:
            ValueError: If filter is unknown
        """
        self.filter_name = config.get('filter', 'lanczos').lower()
        if self.filter_name not in FILTERS:
            raise ValueError(
                f"Unknown resampling filter: '{self.filter_name}'. "
                f"Available filters: {', '.join(FILTERS)}"
            )
        self.reducing_gap = config.get('reducing_gap')

    def resample(
        self,
        image: Image.Image,
        target_width: int,
        target_height: int
    ) -> Optional[Image.Image]:
        if target_width < 1 or target_height < 1:
            Print("WARNING", f"Refusing to resample to {target_width}x{target_height}")
            return None

        # Palette images resample poorly; work in RGB(A)
        source = image
        if source.mode == 'P':
            source = source.convert('RGBA' if 'transparency' in source.info else 'RGB')

        try:
            resized = source.resize(
                (target_width, target_height),
                resample=FILTERS[self.filter_name],
                reducing_gap=self.reducing_gap
            )
        except (OSError, ValueError) as e:
            Print("WARNING", f"Resampling failed: {e}")
            return None

        Print("DEBUG", f"Resampled {image.width}x{image.height} -> {target_width}x{target_height} ({self.filter_name})")
        return resized

    @property
    def name(self) -> str:
        return "pillow"
