import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from crustasync import __version__
from crustasync.cli import main
from crustasync.report import SyncReport


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        base = Path(self._tmp.name)
        self.src = base / "src"
        self.dst = base / "dst"
        self.config_dir = base / "config"
        (self.src / "docs").mkdir(parents=True)
        (self.src / "docs" / "readme.txt").write_bytes(b"v1")
        self.dst.mkdir()
        self.runner = CliRunner()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _invoke(self, *args: str):
        return self.runner.invoke(
            main,
            ["-c", str(self.config_dir), "--log-level", "ERROR", *args],
        )

    def test_version(self) -> None:
        result = self.runner.invoke(main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.output)

    def test_sync_local_to_local(self) -> None:
        result = self._invoke(str(self.src), str(self.dst))

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Sync: created=2", result.output)
        self.assertEqual((self.dst / "docs" / "readme.txt").read_bytes(), b"v1")

    def test_dry_run_prints_plan_and_changes_nothing(self) -> None:
        result = self._invoke("--dry-run", str(self.src), str(self.dst))

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("---- Batch 0 ----", result.output)
        self.assertIn("Create(/docs/readme.txt)", result.output)
        self.assertIn("Dry run:", result.output)
        self.assertEqual(list(self.dst.iterdir()), [])

    def test_missing_source_exits_with_usage_error(self) -> None:
        result = self._invoke(str(self.src / "missing"), str(self.dst))
        self.assertEqual(result.exit_code, 2)
        self.assertIn("Error:", result.output)

    def test_failed_actions_exit_non_zero(self) -> None:
        with patch("crustasync.cli.SyncManager.sync", return_value=SyncReport(created=1, failed=1)):
            result = self._invoke(str(self.src), str(self.dst))
        self.assertEqual(result.exit_code, 1)
        self.assertIn("failed=1", result.output)

    def test_invalid_log_level_is_rejected(self) -> None:
        result = self.runner.invoke(main, ["--log-level", "LOUD", str(self.src), str(self.dst)])
        self.assertEqual(result.exit_code, 2)

    def test_fingerprint_cache_is_written_to_config_dir(self) -> None:
        result = self._invoke("--fingerprint-cache", str(self.src), str(self.dst))
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue((self.config_dir / "fingerprints.json").exists())


if __name__ == "__main__":
    unittest.main()
