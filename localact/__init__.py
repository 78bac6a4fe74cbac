"""Building blocks for running CI workflow jobs locally: contexts, matrix expansion, drawing, reports, an artifact server and configuration helpers."""

__version__ = "0.1.0"