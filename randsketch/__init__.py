"""Reproducible random sketching operators, sparse matrix tools and a total least squares demo."""

__version__ = "0.1.0"

__all__ = ["philox", "dense", "csc", "conversions", "sksp", "tls"]