"""Persistent provisioner settings schema and load/save helpers."""

from __future__ import annotations

import json
import os
import platform
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


SETTINGS_VERSION = 2


@dataclass
class ReleaseSettings:
    repo: str = "rustdesk/rustdesk"
    metadata_url: str = "https://api.github.com/repos/{repo}/releases/latest"
    download_base: str = "https://github.com/rustdesk/rustdesk/releases/download"
    filename_template: str = "rustdesk-{identifier}-x86_64.exe"
    metadata_timeout_s: int = 30
    download_timeout_s: int = 180


@dataclass
class InstallSettings:
    silent_flag: str = "--silent-install"
    service_flag: str = "--install-service"
    reboot_exit_codes: list[int] = field(default_factory=lambda: [3010])


@dataclass
class ClientSettings:
    config_path: str | None = None
    backup_suffix: str = ".bak"
    executable_candidates: list[str] = field(default_factory=list)


@dataclass
class ProvisionerSettings:
    config_version: int = SETTINGS_VERSION
    release: ReleaseSettings = field(default_factory=ReleaseSettings)
    install: InstallSettings = field(default_factory=InstallSettings)
    client: ClientSettings = field(default_factory=ClientSettings)


def settings_root() -> Path:
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "DeskRelay"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "DeskRelay"
    return Path.home() / ".config" / "deskrelay"


def settings_path() -> Path:
    return settings_root() / "provision.json"


def _merge(dataclass_type, raw: dict[str, Any]):
    defaults = dataclass_type()  # type: ignore[misc]
    if not isinstance(raw, dict):
        return defaults
    for k, v in raw.items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_str(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value else default


def _template_ok(template: str, **fields: str) -> bool:
    try:
        template.format(**fields)
    except (KeyError, IndexError, ValueError):
        return False
    return True


def _normalize_release(cfg: ProvisionerSettings) -> None:
    defaults = ReleaseSettings()
    release = cfg.release
    release.repo = _as_str(release.repo, defaults.repo)

    release.metadata_url = _as_str(release.metadata_url, defaults.metadata_url)
    if not _template_ok(release.metadata_url, repo=release.repo):
        release.metadata_url = defaults.metadata_url

    release.filename_template = _as_str(release.filename_template, defaults.filename_template)
    if "{identifier}" not in release.filename_template or not _template_ok(
        release.filename_template, identifier="x"
    ):
        release.filename_template = defaults.filename_template

    base = _as_str(release.download_base, defaults.download_base).rstrip("/")
    release.download_base = base or defaults.download_base
    release.metadata_timeout_s = max(1, _as_int(release.metadata_timeout_s, defaults.metadata_timeout_s))
    release.download_timeout_s = max(1, _as_int(release.download_timeout_s, defaults.download_timeout_s))


def _normalize_install(cfg: ProvisionerSettings) -> None:
    defaults = InstallSettings()
    cfg.install.silent_flag = _as_str(cfg.install.silent_flag, defaults.silent_flag)
    cfg.install.service_flag = _as_str(cfg.install.service_flag, defaults.service_flag)

    codes = cfg.install.reboot_exit_codes
    if not isinstance(codes, list):
        codes = [codes]
    parsed = [_as_int(c, 0) for c in codes]
    cfg.install.reboot_exit_codes = [c for c in parsed if c != 0]


def _normalize_client(cfg: ProvisionerSettings) -> None:
    if not isinstance(cfg.client.config_path, str) or not cfg.client.config_path:
        cfg.client.config_path = None
    cfg.client.backup_suffix = _as_str(cfg.client.backup_suffix, ".bak")
    candidates = cfg.client.executable_candidates
    if not isinstance(candidates, list):
        candidates = []
    cfg.client.executable_candidates = [p for p in candidates if isinstance(p, str) and p]


def _migrate(raw: dict[str, Any]) -> dict[str, Any]:
    version = _as_int(raw.get("config_version", 1), 1)
    data = dict(raw)

    if version < 2:
        # v1 kept a single reboot code and a flat client config path.
        install = data.get("install")
        install = dict(install) if isinstance(install, dict) else {}
        if "reboot_exit_code" in install:
            install["reboot_exit_codes"] = [install.pop("reboot_exit_code")]
        data["install"] = install
        client = data.get("client")
        client = dict(client) if isinstance(client, dict) else {}
        if "client_config_path" in data:
            client.setdefault("config_path", data.pop("client_config_path"))
        data["client"] = client
        data["config_version"] = 2

    return data


def load_settings(path: Path | None = None) -> ProvisionerSettings:
    path = path or settings_path()
    if not path.exists():
        return ProvisionerSettings()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return ProvisionerSettings()
    if not isinstance(raw, dict):
        return ProvisionerSettings()

    data = _migrate(raw)
    cfg = ProvisionerSettings(
        config_version=_as_int(data.get("config_version", SETTINGS_VERSION), SETTINGS_VERSION),
        release=_merge(ReleaseSettings, data.get("release", {})),
        install=_merge(InstallSettings, data.get("install", {})),
        client=_merge(ClientSettings, data.get("client", {})),
    )

    _normalize_release(cfg)
    _normalize_install(cfg)
    _normalize_client(cfg)
    return cfg


def save_settings(cfg: ProvisionerSettings, path: Path | None = None) -> Path:
    cfg.config_version = SETTINGS_VERSION
    path = path or settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True), encoding="utf-8")
    return path
