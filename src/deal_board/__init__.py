"""Multi-tenant deal filtering and opportunity board pipeline."""

__version__ = "0.1.0"
