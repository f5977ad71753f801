"""Client facade module."""

from .stitch_client import StitchClient, create_default_client

__all__ = ["StitchClient", "create_default_client"]
