"""
Lossy Encoder Protocol for Shrinkray

Defines the contract that all lossy encoders must implement.
"""

from typing import Protocol, Optional
from PIL import Image


class LossyEncoder(Protocol):
    """
    Protocol for lossy image encoders.

    Encoders are responsible for:
    - Encoding PIL images to compressed byte streams at a quality factor
    - Reporting failure as None rather than raising
    """

    def encode(self, image: Image.Image, quality: float) -> Optional[bytes]:
        """
        Encode image to bytes.

        Args:
            image: PIL Image to encode (never modified)
            quality: Quality factor in [0.0, 1.0], 1.0 is highest fidelity
                    and largest output

        Returns:
            Encoded bytes, or None if the image could not be encoded
        """
        ...

    @property
    def mime_type(self) -> str:
        """MIME type of the encoded output (e.g., 'image/jpeg')."""
        ...

    @property
    def extension(self) -> str:
        """File extension for the encoded output, with leading dot."""
        ...

    @property
    def name(self) -> str:
        """
        Encoder identifier for logging and debugging.

        Returns:
            Unique name of this encoder (e.g., 'jpeg')
        """
        ...
