"""
JPEG encoding engine for Shrinkray

Produces baseline or progressive JPEG through Pillow. The quality factor
used by the re-encoder is a float in [0.0, 1.0]; Pillow expects an integer
on a 1-100 scale, so the factor is scaled and clamped here.

Requirements:
- Pillow (pip install Pillow)
"""

import io
from typing import Optional
from PIL import Image

from utilities import Print
from . import register_encoder

# Pillow JPEG quality bounds
PIL_QUALITY_MIN = 1
PIL_QUALITY_MAX = 100


@register_encoder("jpeg")
class JPEGEncoderFactory:
    """Factory for creating JPEG encoder instances."""

    @staticmethod
    def create(config: dict) -> "JPEGEncoder":
        return JPEGEncoder(config)


def to_pil_quality(quality: float) -> int:
    """Map a [0.0, 1.0] quality factor onto Pillow's integer scale."""
    return max(PIL_QUALITY_MIN, min(PIL_QUALITY_MAX, int(round(quality * 100))))


class JPEGEncoder:
    """
    JPEG encoder for arbitrary PIL images.

    JPEG carries no alpha channel, so transparent images are composited
    onto a white background before encoding.

    Attributes:
        optimize: If True, compute optimal Huffman tables (smaller output)
        progressive: If True, write a progressive JPEG
        subsampling: Chroma subsampling (-1 keeps Pillow's default,
                     0 = 4:4:4, 1 = 4:2:2, 2 = 4:2:0)
        keep_exif: If True, carry the source EXIF block into the output
    """

    def __init__(self, config: dict):
        """
        Initialize JPEG encoder with configuration.

        Args:
            config: Configuration dictionary with optional keys:
                - optimize: bool (default: True)
                - progressive: bool (default: False)
                - subsampling: int (default: -1)
                - keep_exif: bool (default: False)
        """
        self.optimize = config.get('optimize', True)
        self.progressive = config.get('progressive', False)
        self.subsampling = config.get('subsampling', -1)
        self.keep_exif = config.get('keep_exif', False)

    def _to_rgb(self, image: Image.Image) -> Image.Image:
        """Return an RGB (or L) view of image suitable for JPEG."""
        if image.mode in ('RGB', 'L'):
            return image

        if image.mode in ('RGBA', 'LA') or (image.mode == 'P' and 'transparency' in image.info):
            rgba = image.convert('RGBA')
            background = Image.new('RGB', rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel('A'))
            return background

        return image.convert('RGB')

    def encode(self, image: Image.Image, quality: float) -> Optional[bytes]:
        """
        Encode image to JPEG.

        Args:
            image: PIL Image to encode
            quality: Quality factor in [0.0, 1.0]

        Returns:
            JPEG bytes, or None if quality is out of range or Pillow fails
        """
        if not 0.0 <= quality <= 1.0:
            Print("WARNING", f"JPEG quality out of range: {quality}")
            return None

        pil_quality = to_pil_quality(quality)
        buffer = io.BytesIO()

        save_kwargs = {
            'format': 'JPEG',
            'quality': pil_quality,
            'optimize': self.optimize,
            'progressive': self.progressive,
        }
        if self.subsampling != -1:
            save_kwargs['subsampling'] = self.subsampling
        if self.keep_exif and image.info.get('exif'):
            save_kwargs['exif'] = image.info['exif']

        try:
            self._to_rgb(image).save(buffer, **save_kwargs)
        except (OSError, ValueError) as e:
            Print("WARNING", f"JPEG encoding failed: {e} (size: {image.size}, mode: {image.mode})")
            return None

        encoded = buffer.getvalue()
        if not encoded:
            return None

        Print("DEBUG", f"JPEG: {image.width}x{image.height} q={pil_quality} -> {len(encoded):,} bytes")
        return encoded

    @property
    def mime_type(self) -> str:
        return "image/jpeg"

    @property
    def extension(self) -> str:
        return ".jpg"

    @property
    def name(self) -> str:
        """Encoder identifier."""
        return "jpeg"
