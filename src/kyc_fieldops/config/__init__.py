"""Configuration module for the KYC field-study tooling."""

from kyc_fieldops.config.logging import bind_run_context, configure_logging, get_logger
from kyc_fieldops.config.roster import Confederate, load_roster
from kyc_fieldops.config.settings import FlatSettings, get_settings

__all__ = [
    "Confederate",
    "FlatSettings",
    "bind_run_context",
    "configure_logging",
    "get_logger",
    "get_settings",
    "load_roster",
]
