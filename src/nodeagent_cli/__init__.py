"""Operator command-line interface for the node agent core."""

__version__ = "0.1.0"
