"""Configuration module for the APS relay."""

from src.config.settings import APSSettings, ConfigurationError, parse_origins

__all__ = ["APSSettings", "ConfigurationError", "parse_origins"]
