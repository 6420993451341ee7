"""Configuration module for automaton."""

from automaton.config.settings import AutomatonConfig, LoggingConfig, load_config

__all__ = ["AutomatonConfig", "LoggingConfig", "load_config"]
