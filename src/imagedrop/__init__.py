"""imagedrop - Ephemeral image and text drop with background image analysis."""

__version__ = "0.1.0"
