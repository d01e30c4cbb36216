"""Shared helpers: YAML config loading and logging setup."""

from .common import load_yaml_config, setup_logging

__all__ = ["load_yaml_config", "setup_logging"]
