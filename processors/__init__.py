"""
Re-encoding processors for Shrinkray

Policies that drive the encoder and resampler engines to hit a size target.
"""

from .reencoder import BoundedSizeReencoder, ReencodeReport

__all__ = ['BoundedSizeReencoder', 'ReencodeReport']
