"""Slack planning poker bot."""

__version__ = "1.0.0"
