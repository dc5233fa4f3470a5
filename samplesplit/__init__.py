"""Audio sample buffers, slicing with cross fading, analysis and WAV/AIFF sample file handling."""

__version__ = "0.1.0"

__all__ = ["analysis", "info", "loader", "sample_buffers", "sample_file", "slicer"]