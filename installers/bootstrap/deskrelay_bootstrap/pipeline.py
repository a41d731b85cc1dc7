"""Sequential provisioning pipeline: resolve, fetch, install, configure, launch."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Callable

from deskrelay_core.config import ProvisionerSettings

from .configure import inject_client_config
from .launcher import launch_client
from .models import ConfigError, ConfigFragment, LaunchError, ProvisionRequest, ProvisionResult
from .resolver import TagLookup, resolve_release
from .service import discard_artifact, download_artifact, install_artifact


ProgressCallback = Callable[[str], None]


def provision(
    request: ProvisionRequest,
    settings: ProvisionerSettings | None = None,
    progress: ProgressCallback | None = None,
    configure_only: bool = False,
    lookup: TagLookup | None = None,
) -> ProvisionResult:
    """Run every stage in order.

    Resolution, download, and install errors propagate and stop the run.
    Config and launch errors are recorded in ``result.warnings``.
    """
    settings = settings or ProvisionerSettings()
    progress = progress or (lambda _msg: None)
    result = ProvisionResult()

    if not configure_only:
        progress(f"Resolving version '{request.version_token}'")
        result.release = resolve_release(request.version_token, settings.release, lookup)
        progress(f"Resolved release {result.release.identifier}")

        with tempfile.TemporaryDirectory(prefix="deskrelay-install-", ignore_cleanup_errors=True) as tmp:
            result.artifact = download_artifact(
                result.release,
                Path(tmp),
                settings=settings.release,
                expected_sha256=request.expected_sha256,
                progress=progress,
            )
            try:
                result.install = install_artifact(
                    result.artifact,
                    install_service=request.install_service,
                    settings=settings.install,
                    progress=progress,
                )
            finally:
                if not discard_artifact(result.artifact):
                    result.warnings.append(f"Could not remove downloaded artifact {result.artifact.local_path}")

    fragment = ConfigFragment.from_request(request)
    config_path = Path(settings.client.config_path) if settings.client.config_path else None
    try:
        result.injection = inject_client_config(
            fragment,
            config_path=config_path,
            backup_suffix=settings.client.backup_suffix,
            progress=progress,
        )
    except ConfigError as exc:
        result.warnings.append(str(exc))

    if request.start_after_install:
        try:
            result.launch = launch_client(settings.client.executable_candidates, progress=progress)
        except LaunchError as exc:
            result.warnings.append(str(exc))

    return result
