"""Interactive SQL client with stored connection profiles and pluggable drivers."""

__version__ = "0.1.0"
