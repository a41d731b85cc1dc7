"""CLI entry point for unattended client provisioning."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path

from deskrelay_core.config import load_settings
from deskrelay_core.diagnostics import build_run_report
from deskrelay_core.logging_setup import configure_logging, get_logger

from .models import ProvisionError, ProvisionRequest, ProvisionResult
from .pipeline import provision


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deskrelay-provision",
        description="Install the remote-access client and point it at a self-hosted relay",
    )
    parser.add_argument("--version", default="latest", help="Release tag or 'latest'")
    parser.add_argument("--relay", default=None, help="Relay server address")
    parser.add_argument("--api", default=None, help="API server address")
    parser.add_argument("--key", default=None, help="Relay public key")
    parser.add_argument("--no-service", action="store_true", help="Do not install the client service")
    parser.add_argument("--no-start", action="store_true", help="Do not start the client afterwards")
    parser.add_argument("--sha256", default=None, help="Expected SHA-256 of the installer")
    parser.add_argument("--settings", default=None, help="Provisioner settings JSON path")
    parser.add_argument("--client-config", default=None, help="Override the client config file path")
    parser.add_argument("--configure-only", action="store_true", help="Skip install, only configure and start")
    parser.add_argument("--verbose", action="store_true", help="Debug console output")
    return parser


def request_from_args(args: argparse.Namespace) -> ProvisionRequest:
    return ProvisionRequest(
        version_token=args.version,
        install_service=not args.no_service,
        start_after_install=not args.no_start,
        relay_address=args.relay or None,
        api_address=args.api or None,
        auth_key=args.key or None,
        expected_sha256=args.sha256 or None,
    )


def _summary(request: ProvisionRequest, result: ProvisionResult | None, error: str | None, exit_code: int) -> dict:
    payload: dict = {"request": asdict(request), "exit_code": exit_code}
    if result is not None:
        payload.update(
            {
                "release": asdict(result.release) if result.release else None,
                "install": asdict(result.install) if result.install else None,
                "config": asdict(result.injection) if result.injection else None,
                "launch": asdict(result.launch) if result.launch else None,
                "reboot_required": result.reboot_required,
                "warnings": list(result.warnings),
            }
        )
    if error:
        payload["error"] = error
    return build_run_report(payload)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    logger = get_logger("cli")

    settings = load_settings(Path(args.settings) if args.settings else None)
    if args.client_config:
        settings.client.config_path = args.client_config
    request = request_from_args(args)

    try:
        result = provision(
            request,
            settings=settings,
            progress=lambda msg: logger.info(msg, extra={"event": "progress"}),
            configure_only=args.configure_only,
        )
    except ProvisionError as exc:
        logger.error("Provisioning failed: %s", exc, extra={"event": "provision_failed"})
        print(json.dumps(_summary(request, None, str(exc), 1), indent=2))
        return 1

    for warning in result.warnings:
        logger.warning(warning, extra={"event": "provision_warning"})
    if result.reboot_required:
        logger.warning("Reboot required to finish installation", extra={"event": "reboot_required"})

    print(json.dumps(_summary(request, result, None, 0), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
