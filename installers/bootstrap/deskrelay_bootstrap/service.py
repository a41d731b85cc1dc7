"""Network, download, and installer process helpers for the provisioner."""

from __future__ import annotations

import hashlib
import http.client
import json
import os
import platform
import shutil
import ssl
import subprocess
import urllib.error
import urllib.request
from pathlib import Path
from typing import Callable

import certifi

from deskrelay_core.config import InstallSettings, ReleaseSettings

from .models import (
    DownloadError,
    FetchedArtifact,
    InstallError,
    InstallOutcome,
    InstallStatus,
    ResolutionError,
    ResolvedRelease,
)


ProgressCallback = Callable[[str], None]


def _build_ssl_context() -> ssl.SSLContext:
    """Create TLS context for metadata and artifact requests with explicit CA handling."""
    if os.environ.get("DESKRELAY_ALLOW_INSECURE_TLS", "").strip() == "1":
        return ssl._create_unverified_context()

    ca_bundle = os.environ.get("DESKRELAY_CA_BUNDLE", "").strip()
    if ca_bundle:
        return ssl.create_default_context(cafile=ca_bundle)

    return ssl.create_default_context(cafile=certifi.where())


def _urlopen(url: str, timeout: int, accept: str = "*/*"):
    request = urllib.request.Request(
        url,
        headers={
            "User-Agent": "DeskRelayProvisioner/0.1",
            "Accept": accept,
        },
    )
    return urllib.request.urlopen(request, timeout=timeout, context=_build_ssl_context())


def fetch_latest_tag(settings: ReleaseSettings) -> str:
    """Return the tag of the most recent published release. Single attempt."""
    try:
        url = settings.metadata_url.format(repo=settings.repo)
    except (KeyError, IndexError, ValueError) as exc:
        raise ResolutionError(f"Invalid metadata URL template {settings.metadata_url!r}: {exc!r}") from exc

    try:
        with _urlopen(url, timeout=settings.metadata_timeout_s, accept="application/vnd.github+json") as response:
            payload = json.loads(response.read().decode("utf-8"))
    except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
        raise ResolutionError(f"Release metadata request failed: {exc}") from exc
    except ValueError as exc:
        raise ResolutionError(f"Release metadata is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise ResolutionError("Release metadata is not a JSON object")
    tag = payload.get("tag_name")
    if not isinstance(tag, str) or not tag.strip():
        raise ResolutionError("Release metadata has no tag_name")
    return tag


def download_file(url: str, dest: Path, timeout: int = 180) -> Path:
    with _urlopen(url, timeout=timeout) as response, dest.open("wb") as fh:
        shutil.copyfileobj(response, fh)
    return dest


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def artifact_name(release: ResolvedRelease) -> str:
    return release.download_url.rstrip("/").rsplit("/", 1)[-1]


def download_artifact(
    release: ResolvedRelease,
    destination_dir: Path,
    settings: ReleaseSettings | None = None,
    expected_sha256: str | None = None,
    progress: ProgressCallback | None = None,
) -> FetchedArtifact:
    settings = settings or ReleaseSettings()
    progress = progress or (lambda _msg: None)

    destination_dir.mkdir(parents=True, exist_ok=True)
    path = destination_dir / artifact_name(release)

    progress(f"Downloading {release.download_url}")
    try:
        download_file(release.download_url, path, timeout=settings.download_timeout_s)
    except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
        raise DownloadError(f"Download failed: {exc}") from exc

    if not path.is_file():
        raise DownloadError(f"Downloaded artifact missing: {path}")
    size = path.stat().st_size
    if size == 0:
        raise DownloadError(f"Downloaded artifact is empty: {path}")

    if expected_sha256:
        progress("Verifying checksum")
        digest = sha256_file(path)
        if digest.lower() != expected_sha256.strip().lower():
            raise DownloadError(f"Checksum mismatch for {path.name}: got {digest}")

    progress(f"Download complete ({size} bytes)")
    return FetchedArtifact(local_path=path, size_bytes=size)


def installer_command(artifact_path: Path, install_service: bool, settings: InstallSettings) -> list[str]:
    cmd = [str(artifact_path), settings.silent_flag]
    if install_service:
        cmd.append(settings.service_flag)
    return cmd


def classify_exit_code(exit_code: int, reboot_exit_codes: list[int]) -> InstallOutcome:
    if exit_code == 0:
        return InstallOutcome(status=InstallStatus.SUCCESS, exit_code=0)
    if exit_code in reboot_exit_codes:
        return InstallOutcome(status=InstallStatus.SUCCESS_REBOOT_REQUIRED, exit_code=exit_code)
    return InstallOutcome(status=InstallStatus.FAILED, exit_code=exit_code)


def run_installer(artifact_path: Path, install_service: bool, settings: InstallSettings) -> int:
    if not platform.system().lower().startswith("win"):
        artifact_path.chmod(artifact_path.stat().st_mode | 0o111)
    return subprocess.call(installer_command(artifact_path, install_service, settings))


def install_artifact(
    artifact: FetchedArtifact,
    install_service: bool = True,
    settings: InstallSettings | None = None,
    progress: ProgressCallback | None = None,
) -> InstallOutcome:
    settings = settings or InstallSettings()
    progress = progress or (lambda _msg: None)

    progress("Running installer" + (" with service" if install_service else ""))
    try:
        code = run_installer(artifact.local_path, install_service, settings)
    except OSError as exc:
        raise InstallError(None, f"Installer could not be started: {exc}") from exc

    outcome = classify_exit_code(int(code), settings.reboot_exit_codes)
    if outcome.status is InstallStatus.FAILED:
        raise InstallError(outcome.exit_code)
    return outcome


def discard_artifact(artifact: FetchedArtifact) -> bool:
    """Best-effort removal of the downloaded artifact."""
    try:
        artifact.local_path.unlink()
    except FileNotFoundError:
        return True
    except OSError:
        return False
    return True
