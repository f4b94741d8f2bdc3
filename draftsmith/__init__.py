"""Demand-letter draft generation from matter source documents."""

__version__ = "0.1.0"
