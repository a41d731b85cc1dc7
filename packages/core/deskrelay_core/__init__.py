"""Core services for provisioner settings, logging, and report redaction."""

from .config import (
    ClientSettings,
    InstallSettings,
    ProvisionerSettings,
    ReleaseSettings,
    load_settings,
    save_settings,
    settings_path,
)
from .diagnostics import build_run_report, redact
from .logging_setup import configure_logging, get_logger

__all__ = [
    "ClientSettings",
    "InstallSettings",
    "ProvisionerSettings",
    "ReleaseSettings",
    "build_run_report",
    "configure_logging",
    "get_logger",
    "load_settings",
    "redact",
    "save_settings",
    "settings_path",
]
