"""Version token resolution and deterministic download URL construction."""

from __future__ import annotations

from typing import Callable

from deskrelay_core.config import ReleaseSettings

from .models import ResolutionError, ResolvedRelease
from .service import fetch_latest_tag


LATEST = "latest"

TagLookup = Callable[[ReleaseSettings], str]


def build_download_url(identifier: str, settings: ReleaseSettings | None = None) -> str:
    settings = settings or ReleaseSettings()
    try:
        filename = settings.filename_template.format(identifier=identifier)
    except (KeyError, IndexError, ValueError) as exc:
        raise ResolutionError(f"Invalid filename template {settings.filename_template!r}: {exc!r}") from exc
    return f"{settings.download_base.rstrip('/')}/{identifier}/{filename}"


def resolve_identifier(token: str, settings: ReleaseSettings, lookup: TagLookup | None = None) -> str:
    if not token or not token.strip():
        raise ResolutionError("Version token is empty")
    if token != LATEST:
        # Explicit tokens are trusted verbatim.
        return token

    return (lookup or fetch_latest_tag)(settings)


def resolve_release(
    token: str = LATEST,
    settings: ReleaseSettings | None = None,
    lookup: TagLookup | None = None,
) -> ResolvedRelease:
    settings = settings or ReleaseSettings()
    identifier = resolve_identifier(token, settings, lookup)
    return ResolvedRelease(identifier=identifier, download_url=build_download_url(identifier, settings))
