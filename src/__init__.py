# src/__init__.py — v1
"""datamingle — federated joins over a value-mapping graph."""

from datamingle.version import __version__

__all__ = ["__version__"]
