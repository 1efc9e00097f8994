"""Toonana: journal-entry to comic generation pipeline."""

from .environment import load_environment

# Load environment variables from .env-style files as soon as the package is
# imported so the web API and tests see the same provider configuration.
load_environment()

__all__ = ["load_environment"]
