"""OpenRouter gateway client and streaming decoder for the concept-map app."""

__version__ = "0.1.0"
