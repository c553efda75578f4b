"""Configuration package."""

from holdings_recon.config.settings import Settings, load_settings
from holdings_recon.config.logging_config import setup_logging

__all__ = [
    "Settings",
    "load_settings",
    "setup_logging",
]
