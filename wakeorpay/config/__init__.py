"""Configuration module for wakeorpay."""

from wakeorpay.config.loader import load_config, get_config_path
from wakeorpay.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
