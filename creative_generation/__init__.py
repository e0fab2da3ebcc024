"""Bulk creative image generation for marketing campaign briefs."""

__version__ = "1.0.0"
