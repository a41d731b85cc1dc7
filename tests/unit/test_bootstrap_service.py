import hashlib
import http.client
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "core"))
sys.path.insert(0, str(ROOT / "installers" / "bootstrap"))

import deskrelay_bootstrap.service as service
from deskrelay_bootstrap.models import (
    DownloadError,
    FetchedArtifact,
    InstallError,
    InstallStatus,
    ResolvedRelease,
)
from deskrelay_core.config import InstallSettings


RELEASE = ResolvedRelease(
    identifier="1.2.3",
    download_url="https://example/download/1.2.3/rustdesk-1.2.3-x86_64.exe",
)


class DownloadTests(unittest.TestCase):
    def setUp(self):
        self._orig = service.download_file

    def tearDown(self):
        service.download_file = self._orig

    def _serve(self, payload: bytes | None):
        def fake_download_file(url, dest, timeout=180):
            if payload is not None:
                dest.write_bytes(payload)
            return dest

        service.download_file = fake_download_file

    def test_download_artifact_names_file_from_url(self):
        self._serve(b"MZ-payload")
        with tempfile.TemporaryDirectory() as tmp:
            artifact = service.download_artifact(RELEASE, Path(tmp))
            self.assertEqual(artifact.local_path.name, "rustdesk-1.2.3-x86_64.exe")
            self.assertEqual(artifact.size_bytes, len(b"MZ-payload"))

    def test_empty_download_is_rejected(self):
        self._serve(b"")
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(DownloadError):
                service.download_artifact(RELEASE, Path(tmp))

    def test_missing_download_is_rejected(self):
        self._serve(None)
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(DownloadError):
                service.download_artifact(RELEASE, Path(tmp))

    def test_network_error_is_download_error(self):
        def boom(url, dest, timeout=180):
            raise OSError("connection reset")

        service.download_file = boom
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(DownloadError):
                service.download_artifact(RELEASE, Path(tmp))

    def test_truncated_body_is_download_error(self):
        def truncated(url, dest, timeout=180):
            raise http.client.IncompleteRead(b"MZ", 1024)

        service.download_file = truncated
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(DownloadError):
                service.download_artifact(RELEASE, Path(tmp))

    def test_optional_checksum(self):
        self._serve(b"hello world")
        digest = hashlib.sha256(b"hello world").hexdigest()
        with tempfile.TemporaryDirectory() as tmp:
            artifact = service.download_artifact(RELEASE, Path(tmp), expected_sha256=digest.upper())
            self.assertEqual(service.sha256_file(artifact.local_path), digest)
            with self.assertRaises(DownloadError):
                service.download_artifact(RELEASE, Path(tmp), expected_sha256="deadbeef")


class InstallTests(unittest.TestCase):
    def test_classify_exit_code(self):
        self.assertIs(service.classify_exit_code(0, [3010]).status, InstallStatus.SUCCESS)
        self.assertIs(service.classify_exit_code(3010, [3010]).status, InstallStatus.SUCCESS_REBOOT_REQUIRED)
        failed = service.classify_exit_code(1, [3010])
        self.assertIs(failed.status, InstallStatus.FAILED)
        self.assertEqual(failed.exit_code, 1)

    def test_installer_command_flags(self):
        settings = InstallSettings()
        path = Path("/tmp/rustdesk.exe")
        self.assertEqual(
            service.installer_command(path, True, settings),
            [str(path), "--silent-install", "--install-service"],
        )
        self.assertEqual(service.installer_command(path, False, settings), [str(path), "--silent-install"])

    def test_discard_artifact_is_best_effort(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "setup.exe"
            path.write_bytes(b"x")
            artifact = FetchedArtifact(local_path=path, size_bytes=1)
            self.assertTrue(service.discard_artifact(artifact))
            self.assertFalse(path.exists())
            self.assertTrue(service.discard_artifact(artifact))


def test_install_artifact_runs_installer(monkeypatch, tmp_path) -> None:
    artifact_path = tmp_path / "rustdesk.exe"
    artifact_path.write_bytes(b"MZ")
    calls: list[list[str]] = []

    monkeypatch.setattr(service.platform, "system", lambda: "Linux")
    monkeypatch.setattr(service.subprocess, "call", lambda cmd: calls.append(cmd) or 3010)

    outcome = service.install_artifact(FetchedArtifact(artifact_path, 2), install_service=False)
    assert outcome.reboot_required
    assert calls == [[str(artifact_path), "--silent-install"]]
    assert artifact_path.stat().st_mode & 0o111


def test_install_artifact_raises_on_failure(monkeypatch, tmp_path) -> None:
    artifact_path = tmp_path / "rustdesk.exe"
    artifact_path.write_bytes(b"MZ")
    monkeypatch.setattr(service.platform, "system", lambda: "Windows")
    monkeypatch.setattr(service.subprocess, "call", lambda cmd: 1603)

    try:
        service.install_artifact(FetchedArtifact(artifact_path, 2))
    except InstallError as exc:
        assert exc.exit_code == 1603
    else:
        raise AssertionError("InstallError not raised")


def test_install_artifact_start_failure(monkeypatch, tmp_path) -> None:
    artifact_path = tmp_path / "rustdesk.exe"
    artifact_path.write_bytes(b"MZ")
    monkeypatch.setattr(service.platform, "system", lambda: "Windows")

    def boom(cmd):
        raise PermissionError("denied")

    monkeypatch.setattr(service.subprocess, "call", boom)
    try:
        service.install_artifact(FetchedArtifact(artifact_path, 2))
    except InstallError as exc:
        assert exc.exit_code is None
    else:
        raise AssertionError("InstallError not raised")


if __name__ == "__main__":
    unittest.main()
