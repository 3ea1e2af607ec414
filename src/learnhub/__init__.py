"""LearnHub upload service: direct-to-storage upload coordination."""

__version__ = "0.1.0"
