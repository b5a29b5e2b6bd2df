import io
import json
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

from gpm.cli import _make_runtime_client, _split_package_and_version, build_parser, cmd_install, main
from gpm.client import GpmError, GpmHTTPError
from gpm.config import Config
from gpm.manager import BatchResult, InstallOptions, InstallResult, PackageFailure
from gpm.versions import PackageNotFoundError


def _result(root: Path) -> InstallResult:
    return InstallResult(
        name="widget",
        version="1.2.3",
        author="acme",
        download_url="https://github.com/acme/widget/archive/refs/tags/v1.2.3.zip",
        install_path=root / "acme" / "widget",
    )


class TestInstallCommand(unittest.TestCase):
    def test_single_package_with_save_and_paths(self) -> None:
        args = build_parser().parse_args(
            ["install", "acme/widget", "1.2.3", "--save", "-p", "proj", "-i", "mods", "--include", "md", "--json"]
        )

        with (
            patch("gpm.cli.load_config", return_value=Config()),
            patch("gpm.cli.PackageManager") as mock_manager_cls,
            patch("sys.stdout", new=io.StringIO()) as stdout,
        ):
            mock_manager = mock_manager_cls.return_value
            mock_manager.install_one.return_value = _result(Path("mods"))
            rc = cmd_install(args)

        self.assertEqual(rc, 0)
        package, version, options = mock_manager.install_one.call_args.args
        self.assertEqual((package, version), ("acme/widget", "1.2.3"))
        self.assertEqual(
            options,
            InstallOptions(manifest_path="proj", install_root="mods", save=True, include=("md",), exclude=None),
        )
        payload = json.loads(stdout.getvalue())
        self.assertEqual(payload["download_url"], "https://github.com/acme/widget/archive/refs/tags/v1.2.3.zip")

    def test_version_shorthand(self) -> None:
        self.assertEqual(_split_package_and_version("acme/widget@dev-main", None), ("acme/widget", "dev-main"))
        self.assertEqual(_split_package_and_version("acme/widget", "#abc1234"), ("acme/widget", "#abc1234"))
        with self.assertRaises(GpmError):
            _split_package_and_version("acme/widget@1.0", "2.0")

    def test_batch_install_returns_1_when_any_package_failed(self) -> None:
        args = build_parser().parse_args(["install"])
        batch = BatchResult(
            installed=(_result(Path("gpm_modules")),),
            failed=(PackageFailure(package="acme/ghost", message="Could not find the package acme/ghost."),),
            manifest_path=Path("gpm.json"),
        )

        with (
            patch("gpm.cli.load_config", return_value=Config()),
            patch("gpm.cli.PackageManager") as mock_manager_cls,
            patch("sys.stdout", new=io.StringIO()) as stdout,
        ):
            mock_manager_cls.return_value.install_all.return_value = batch
            rc = cmd_install(args)

        self.assertEqual(rc, 1)
        out = stdout.getvalue()
        self.assertIn("installed: acme/widget 1.2.3", out)
        self.assertIn("failed: acme/ghost (Could not find the package acme/ghost.)", out)
        self.assertIn("Done!", out)


class TestMain(unittest.TestCase):
    def test_errors_are_printed_and_exit_code_is_1(self) -> None:
        with (
            patch("gpm.cli.cmd_versions", side_effect=PackageNotFoundError("Could not find the package acme/ghost.")),
            patch("sys.stderr", new=io.StringIO()) as stderr,
        ):
            rc = main(["versions", "acme/ghost"])

        self.assertEqual(rc, 1)
        self.assertEqual(stderr.getvalue(), "error: Could not find the package acme/ghost.\n")

    def test_verbose_errors_prints_cause_chain(self) -> None:
        def _raise_nested(*_args, **_kwargs):
            http_err = GpmHTTPError(404, "https://github.com/acme/widget/archive/refs/tags/v9.zip")
            outer = GpmError("Unable to find version 9 of package acme/widget.")
            outer.__cause__ = http_err
            raise outer

        with (
            patch("gpm.cli.cmd_install", side_effect=_raise_nested),
            patch("sys.stderr", new=io.StringIO()) as stderr,
        ):
            rc = main(["--verbose-errors", "install", "acme/widget", "9"])

        self.assertEqual(rc, 1)
        err = stderr.getvalue()
        self.assertIn("error: Unable to find version 9 of package acme/widget.", err)
        self.assertIn("error_details:", err)
        self.assertIn("cause[1]: GpmHTTPError: HTTP 404 for https://github.com/acme/widget/archive/refs/tags/v9.zip", err)

    def test_init_and_uninstall_work_offline(self) -> None:
        with tempfile.TemporaryDirectory() as td, patch("gpm.cli.GitHostClient") as mock_client_cls:
            with patch("sys.stdout", new=io.StringIO()) as stdout:
                self.assertEqual(main(["init", "-p", td]), 0)
            self.assertIn("gpm.json was created.", stdout.getvalue())

            with patch("sys.stderr", new=io.StringIO()) as stderr:
                self.assertEqual(main(["init", "-p", td]), 1)
            self.assertIn("already exists", stderr.getvalue())

            with patch("sys.stdout", new=io.StringIO()) as stdout:
                rc = main(["uninstall", "acme/widget", "-p", td, "--save"])
            self.assertEqual(rc, 0)
            self.assertIn("acme/widget is not installed.", stdout.getvalue())
            mock_client_cls.assert_not_called()


class TestRuntimeClient(unittest.TestCase):
    def test_cli_flags_override_config(self) -> None:
        args = SimpleNamespace(api_url="https://ghe.example.com/api/v3", archive_url=None, token=None, timeout_s=5.0)
        cfg = Config(token="tok_123", archive_url="https://ghe.example.com")

        with (
            patch("gpm.cli.load_config", return_value=cfg),
            patch.dict("os.environ", {}, clear=True),
            patch("gpm.cli.GitHostClient") as mock_client_cls,
        ):
            _make_runtime_client(args)

        kwargs = mock_client_cls.call_args.kwargs
        self.assertEqual(kwargs["api_url"], "https://ghe.example.com/api/v3")
        self.assertEqual(kwargs["archive_url"], "https://ghe.example.com")
        self.assertEqual(kwargs["token"], "tok_123")
        self.assertEqual(kwargs["timeout_s"], 5.0)


if __name__ == "__main__":
    unittest.main()
