"""Resolve, download, install, and configure the remote-access client."""

from .configure import backup_path_for, default_client_config_path, inject_client_config
from .launcher import launch_client, resolve_first_existing
from .models import (
    ConfigError,
    ConfigFragment,
    DownloadError,
    FetchedArtifact,
    InjectionResult,
    InstallError,
    InstallOutcome,
    InstallStatus,
    LaunchError,
    LaunchResult,
    ProvisionError,
    ProvisionRequest,
    ProvisionResult,
    ResolutionError,
    ResolvedRelease,
)
from .pipeline import provision
from .resolver import build_download_url, resolve_release
from .service import download_artifact, install_artifact

__all__ = [
    "ConfigError",
    "ConfigFragment",
    "DownloadError",
    "FetchedArtifact",
    "InjectionResult",
    "InstallError",
    "InstallOutcome",
    "InstallStatus",
    "LaunchError",
    "LaunchResult",
    "ProvisionError",
    "ProvisionRequest",
    "ProvisionResult",
    "ResolutionError",
    "ResolvedRelease",
    "backup_path_for",
    "build_download_url",
    "default_client_config_path",
    "download_artifact",
    "inject_client_config",
    "install_artifact",
    "launch_client",
    "provision",
    "resolve_first_existing",
    "resolve_release",
]
