"""MusicBoard client: public notes with encrypted applause counters."""

__version__ = "0.1.0"
