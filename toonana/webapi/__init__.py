"""HTTP command surface for the generation pipeline."""

from .application import create_app

__all__ = ["create_app"]
