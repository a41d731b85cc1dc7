"""Locate the installed client and start it detached."""

from __future__ import annotations

import os
import platform
import subprocess
from pathlib import Path
from typing import Callable, Iterable

import psutil

from .models import LaunchError, LaunchResult


ProgressCallback = Callable[[str], None]


def default_executable_candidates() -> list[Path]:
    system = platform.system()
    if system == "Windows":
        roots = [
            os.environ.get("ProgramFiles", r"C:\Program Files"),
            os.environ.get("ProgramFiles(x86)", r"C:\Program Files (x86)"),
            os.environ.get("LOCALAPPDATA", str(Path.home() / "AppData" / "Local")),
        ]
        return [Path(root) / "RustDesk" / "rustdesk.exe" for root in roots]
    if system == "Darwin":
        return [
            Path("/Applications/RustDesk.app/Contents/MacOS/RustDesk"),
            Path.home() / "Applications" / "RustDesk.app" / "Contents" / "MacOS" / "RustDesk",
        ]
    return [
        Path("/usr/bin/rustdesk"),
        Path("/usr/local/bin/rustdesk"),
        Path("/opt/rustdesk/rustdesk"),
    ]


def resolve_first_existing(candidates: Iterable[Path | str]) -> Path | None:
    for candidate in candidates:
        path = Path(candidate)
        if path.is_file():
            return path
    return None


def is_running(executable: Path) -> bool:
    target = os.path.normcase(str(executable))
    for proc in psutil.process_iter(["exe"]):
        exe = proc.info.get("exe")
        if exe and os.path.normcase(exe) == target:
            return True
    return False


def start_detached(executable: Path) -> int:
    kwargs: dict = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
        "close_fds": True,
    }
    if platform.system() == "Windows":
        kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True
    proc = subprocess.Popen([str(executable)], **kwargs)
    return proc.pid


def launch_client(
    candidates: Iterable[Path | str] | None = None,
    progress: ProgressCallback | None = None,
) -> LaunchResult:
    progress = progress or (lambda _msg: None)
    paths = list(candidates) if candidates else default_executable_candidates()

    executable = resolve_first_existing(paths)
    if executable is None:
        raise LaunchError("Client executable not found in: " + ", ".join(str(p) for p in paths))

    if is_running(executable):
        progress(f"{executable.name} is already running")
        return LaunchResult(executable=executable, already_running=True)

    try:
        pid = start_detached(executable)
    except OSError as exc:
        raise LaunchError(f"Could not start {executable}: {exc}") from exc

    progress(f"Started {executable} (pid {pid})")
    return LaunchResult(executable=executable, pid=pid)
