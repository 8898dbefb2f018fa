"""Wellness coach backend: semantic response cache, hybrid recommendations, health context."""

__version__ = "0.1.0"
