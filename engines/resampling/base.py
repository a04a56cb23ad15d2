"""
Resampler Protocol for Shrinkray
"""

from typing import Protocol, Optional
from PIL import Image


class Resampler(Protocol):
    """
    Protocol for image resamplers.

    A resampler derives a new image at the requested pixel dimensions.
    The source image must never be modified.
    """

    def resample(
        self,
        image: Image.Image,
        target_width: int,
        target_height: int
    ) -> Optional[Image.Image]:
        """
        Resample image to target_width x target_height.

        Returns:
            New PIL Image, or None if resampling is not possible
        """
        ...

    @property
    def name(self) -> str:
        """Resampler identifier for logging and debugging."""
        ...
