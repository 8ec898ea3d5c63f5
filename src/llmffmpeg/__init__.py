"""Natural-language front end for ffmpeg."""

__version__ = "0.3.0"
