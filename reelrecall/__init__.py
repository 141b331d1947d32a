"""ReelRecall: retrieval-augmented memory for short-form videos."""

__version__ = "0.1.0"
