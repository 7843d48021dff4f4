"""mrvkit: monitoring validation and verification-readiness toolkit."""

__version__ = "0.1.0"
