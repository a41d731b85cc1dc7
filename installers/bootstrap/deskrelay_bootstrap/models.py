"""Request, result, and error types shared by the provisioning stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ProvisionError(RuntimeError):
    """Base class for every provisioning failure."""


class ResolutionError(ProvisionError):
    pass


class DownloadError(ProvisionError):
    pass


class InstallError(ProvisionError):
    def __init__(self, exit_code: int | None, message: str | None = None) -> None:
        self.exit_code = exit_code
        super().__init__(message or f"Installer failed with exit code {exit_code}")


class ConfigError(ProvisionError):
    pass


class LaunchError(ProvisionError):
    pass


@dataclass(frozen=True)
class ProvisionRequest:
    version_token: str = "latest"
    install_service: bool = True
    start_after_install: bool = True
    relay_address: str | None = None
    api_address: str | None = None
    auth_key: str | None = None
    expected_sha256: str | None = None


@dataclass(frozen=True)
class ResolvedRelease:
    identifier: str
    download_url: str


@dataclass(frozen=True)
class FetchedArtifact:
    local_path: Path
    size_bytes: int


class InstallStatus(str, Enum):
    SUCCESS = "success"
    SUCCESS_REBOOT_REQUIRED = "success_reboot_required"
    FAILED = "failed"


@dataclass(frozen=True)
class InstallOutcome:
    status: InstallStatus
    exit_code: int

    @property
    def succeeded(self) -> bool:
        return self.status is not InstallStatus.FAILED

    @property
    def reboot_required(self) -> bool:
        return self.status is InstallStatus.SUCCESS_REBOOT_REQUIRED


# Client config keys, in the order they are written.
RELAY_KEY = "relay-server"
API_KEY = "api-server"
AUTH_KEY = "key"


@dataclass(frozen=True)
class ConfigFragment:
    """Ordered key/value lines appended to the client config file."""

    entries: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_fields(
        cls,
        relay_address: str | None = None,
        api_address: str | None = None,
        auth_key: str | None = None,
    ) -> "ConfigFragment":
        pairs = ((RELAY_KEY, relay_address), (API_KEY, api_address), (AUTH_KEY, auth_key))
        return cls(entries=tuple((k, v) for k, v in pairs if v))

    @classmethod
    def from_request(cls, request: ProvisionRequest) -> "ConfigFragment":
        return cls.from_fields(request.relay_address, request.api_address, request.auth_key)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def lines(self) -> list[str]:
        return [f"{key} = '{value}'" for key, value in self.entries]

    def render(self) -> str:
        if self.is_empty:
            return ""
        return "\n".join(self.lines()) + "\n"


@dataclass(frozen=True)
class InjectionResult:
    skipped: bool
    config_path: Path | None = None
    backup_path: Path | None = None
    keys_written: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class LaunchResult:
    executable: Path
    pid: int | None = None
    already_running: bool = False


@dataclass
class ProvisionResult:
    release: ResolvedRelease | None = None
    artifact: FetchedArtifact | None = None
    install: InstallOutcome | None = None
    injection: InjectionResult | None = None
    launch: LaunchResult | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def reboot_required(self) -> bool:
        return self.install is not None and self.install.reboot_required
