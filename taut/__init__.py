"""Taut: runtime interception and live patching for a closed desktop application."""

__version__ = "0.3.0"
