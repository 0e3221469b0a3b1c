"""Utility modules for the scaffolder service."""

from .config import load_config, Config
from .logger import setup_logger, get_logger

__all__ = ["load_config", "Config", "setup_logger", "get_logger"]
