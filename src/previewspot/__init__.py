"""previewspot - resolves one playable preview track for a playlist id."""

__version__ = "1.0.0"
