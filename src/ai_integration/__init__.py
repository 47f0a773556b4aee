"""Capability routing and multi-stage asset pipeline."""

__version__ = "0.1.0"
