"""Engagement-integrity client for the CancelMe anonymous feed."""

__version__ = "0.1.0"
