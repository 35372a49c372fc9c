"""Configuration module for the planning poker bot."""
from planning_poker.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
