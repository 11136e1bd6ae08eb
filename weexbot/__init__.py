"""Weex volume bot: drives the futures trade page through open / hold / close cycles."""

__version__ = "3.0.0"
