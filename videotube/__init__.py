"""videotube - backend API for a video-sharing platform."""

__version__ = "0.1.0"
