"""Offline active-speaker detection: associates diarized speakers with on-screen faces"""

__version__ = "1.0.0"
