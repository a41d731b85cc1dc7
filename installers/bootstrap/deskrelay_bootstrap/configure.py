"""Append relay/API/key directives to the client's config file.

The client file is owned by the installed application and may carry comments
or unrelated keys. It is never parsed or truncated here: the previous content
is copied to a single-generation backup and the fragment is appended. Repeated
runs accumulate duplicate directives; the client reads the last occurrence.

A stricter alternative would parse the document, replace matching keys and
rewrite it. That is not done, so the append-only behaviour stays the contract.
"""

from __future__ import annotations

import os
import platform
import shutil
from pathlib import Path
from typing import Callable

from .models import ConfigError, ConfigFragment, InjectionResult


ProgressCallback = Callable[[str], None]

CONFIG_FILENAME = "RustDesk2.toml"
DEFAULT_BACKUP_SUFFIX = ".bak"

_FORBIDDEN_CHARS = ("'", "\r", "\n")


def default_client_config_path() -> Path:
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "RustDesk" / "config" / CONFIG_FILENAME
    if system == "Darwin":
        return Path.home() / "Library" / "Preferences" / "com.carriez.RustDesk" / CONFIG_FILENAME
    return Path.home() / ".config" / "rustdesk" / CONFIG_FILENAME


def backup_path_for(config_path: Path, suffix: str = DEFAULT_BACKUP_SUFFIX) -> Path:
    return config_path.with_name(config_path.name + suffix)


def validate_fragment(fragment: ConfigFragment) -> None:
    """Reject values that would break out of a single-quoted literal."""
    for key, value in fragment.entries:
        if any(ch in value for ch in _FORBIDDEN_CHARS):
            raise ConfigError(f"Value for '{key}' contains a quote or line break; configure it manually")


def _needs_separator(path: Path) -> bool:
    with path.open("rb") as fh:
        fh.seek(0, os.SEEK_END)
        if fh.tell() == 0:
            return False
        fh.seek(-1, os.SEEK_END)
        return fh.read(1) != b"\n"


def inject_client_config(
    fragment: ConfigFragment,
    config_path: Path | None = None,
    backup_suffix: str = DEFAULT_BACKUP_SUFFIX,
    progress: ProgressCallback | None = None,
) -> InjectionResult:
    progress = progress or (lambda _msg: None)
    if fragment.is_empty:
        return InjectionResult(skipped=True)

    validate_fragment(fragment)
    path = config_path or default_client_config_path()

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"Could not create config directory {path.parent}: {exc}") from exc

    backup: Path | None = None
    try:
        prefix = b""
        if path.exists():
            backup = backup_path_for(path, backup_suffix)
            shutil.copyfile(path, backup)
            progress(f"Backed up {path.name} to {backup.name}")
            if _needs_separator(path):
                prefix = b"\n"

        with path.open("ab") as fh:
            fh.write(prefix + fragment.render().encode("utf-8"))
    except OSError as exc:
        raise ConfigError(
            f"Could not write client config {path}: {exc}. Manual configuration may be required."
        ) from exc

    progress(f"Wrote {len(fragment.entries)} setting(s) to {path}")
    return InjectionResult(
        skipped=False,
        config_path=path,
        backup_path=backup,
        keys_written=[key for key, _ in fragment.entries],
    )
