"""Pluggable engines for Shrinkray: lossy encoders and resamplers."""
