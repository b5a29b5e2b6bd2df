from __future__ import annotations

import argparse
import json
import sys
import textwrap
from typing import Any

from ._version import __version__
from .client import GitHostClient, GpmError
from .config import Config, config_path, load_config, merge_env, redact_token, save_config
from .manager import BatchResult, InstallOptions, InstallResult, PackageManager


def _echo_stderr(message: str) -> None:
    print(message, file=sys.stderr)


def _merge_cfg(base: Config, args: argparse.Namespace) -> Config:
    # Env overrides config; CLI overrides both.
    env_cfg = merge_env(base)
    timeout_s = getattr(args, "timeout_s", None) or env_cfg.timeout_s
    try:
        timeout_s_f = float(timeout_s)
    except (TypeError, ValueError):
        timeout_s_f = base.timeout_s
    return Config(
        api_url=getattr(args, "api_url", None) or env_cfg.api_url,
        archive_url=getattr(args, "archive_url", None) or env_cfg.archive_url,
        token=getattr(args, "token", None) or env_cfg.token,
        timeout_s=timeout_s_f,
        user_agent=env_cfg.user_agent,
    )


def _client_from_cfg(cfg: Config) -> GitHostClient:
    return GitHostClient(
        api_url=cfg.api_url,
        archive_url=cfg.archive_url,
        token=cfg.token,
        timeout_s=cfg.timeout_s,
        user_agent=cfg.user_agent,
    )


def _make_runtime_client(args: argparse.Namespace) -> GitHostClient:
    return _client_from_cfg(_merge_cfg(load_config(), args))


def _split_package_and_version(package_arg: str, version_arg: str | None) -> tuple[str, str | None]:
    package = package_arg.strip()
    at_idx = package.rfind("@")
    if at_idx > 0:
        shorthand_pkg = package[:at_idx].strip()
        shorthand_ver = package[at_idx + 1 :].strip()
        if "/" in shorthand_pkg and shorthand_ver:
            if version_arg:
                raise GpmError("Specify version either as <package>@<version> or as a second argument, not both.")
            return shorthand_pkg, shorthand_ver
    return package, version_arg


def _options_from_args(args: argparse.Namespace) -> InstallOptions:
    return InstallOptions(
        manifest_path=getattr(args, "path", None),
        install_root=getattr(args, "install_path", None),
        save=bool(getattr(args, "save", False)),
        include=tuple(getattr(args, "include", None) or ()),
        exclude=getattr(args, "exclude", None),
    )


def _result_payload(result: InstallResult) -> dict[str, Any]:
    return {
        "name": result.name,
        "author": result.author,
        "version": result.version,
        "download_url": result.download_url,
        "install_path": str(result.install_path),
    }


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="gpm",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="The Git Package Manager.",
        epilog=textwrap.dedent(
            """\
            Environment variables:
              GPM_API_URL, GPM_ARCHIVE_URL, GPM_TOKEN, GPM_TIMEOUT_S, GPM_CONFIG_PATH
            """
        ),
    )

    def _add_runtime_overrides(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--api-url", help="Host API base URL (default: https://api.github.com)")
        parser.add_argument("--archive-url", help="Archive download base URL (default: https://github.com)")
        parser.add_argument("--token", help="API token (overrides config/env)")
        parser.add_argument("--timeout-s", type=float, help="HTTP timeout in seconds")

    def _add_paths(parser: argparse.ArgumentParser, *, install_help: str) -> None:
        parser.add_argument("-p", "--path", help="Path to the gpm.json file (or the directory holding it)")
        parser.add_argument("-i", "--install-path", help=install_help)

    p.add_argument("--version", action="version", version=f"gpm {__version__}")
    p.add_argument("--verbose-errors", action="store_true", help="Print the full cause chain on errors")

    sub = p.add_subparsers(dest="cmd", required=True)

    install = sub.add_parser("install", aliases=["i"], help="Install a package, or every package in gpm.json")
    _add_runtime_overrides(install)
    install.add_argument("package", nargs="?", help="Package in form author/name (or author/name@version)")
    install.add_argument("version", nargs="?", help="Tag, #commit, dev-<branch> or URL (default: newest)")
    install.add_argument("-s", "--save", action="store_true", help="Adds the package to the gpm.json file")
    _add_paths(install, install_help="Path to install packages (default: <gpm.json dir>/gpm_modules)")
    install.add_argument(
        "--include",
        action="append",
        metavar="EXT",
        help="Only install files with this extension (repeatable)",
    )
    install.add_argument("--exclude", metavar="REGEX", help="Skip archive entries whose path matches REGEX")
    install.add_argument("--json", action="store_true", help="Output JSON")

    uninstall = sub.add_parser("uninstall", aliases=["remove", "rm"], help="Uninstall a package")
    uninstall.add_argument("package", help="Package in form author/name")
    uninstall.add_argument("-s", "--save", action="store_true", help="Removes the package from the gpm.json file")
    _add_paths(uninstall, install_help="Path that the package is installed in")
    uninstall.add_argument("--json", action="store_true", help="Output JSON")

    init = sub.add_parser("init", help="Create a gpm.json file if one doesn't already exist")
    init.add_argument("-p", "--path", help="Where to create the gpm.json file")

    versions = sub.add_parser("versions", help="List available versions for a package")
    _add_runtime_overrides(versions)
    versions.add_argument("package", help="Package in form author/name")
    versions.add_argument("--limit", type=int, help="Maximum number of versions to list")
    versions.add_argument("--json", action="store_true", help="Output JSON")

    cfg = sub.add_parser("config", help="Manage local config")
    cfg_sub = cfg.add_subparsers(dest="subcmd", required=True)
    cfg_sub.add_parser("path", help="Print config path")
    cfg_sub.add_parser("show", help="Show config (token redacted)")
    cfg_set = cfg_sub.add_parser("set", help="Set config fields")
    cfg_set.add_argument("--api-url")
    cfg_set.add_argument("--archive-url")
    cfg_set.add_argument("--token")
    cfg_set.add_argument("--timeout-s", type=float)
    cfg_set.add_argument("--user-agent")

    return p


def cmd_config(args: argparse.Namespace) -> int:
    if args.subcmd == "path":
        print(str(config_path()))
        return 0

    if args.subcmd == "show":
        cfg = load_config()
        d = cfg.__dict__.copy()
        d["token"] = redact_token(cfg.token)
        print(json.dumps(d, indent=2, sort_keys=True))
        return 0

    if args.subcmd == "set":
        cfg = load_config()
        new_cfg = Config(
            api_url=args.api_url or cfg.api_url,
            archive_url=args.archive_url or cfg.archive_url,
            token=args.token if args.token is not None else cfg.token,
            timeout_s=args.timeout_s if args.timeout_s is not None else cfg.timeout_s,
            user_agent=args.user_agent if args.user_agent is not None else cfg.user_agent,
        )
        path = save_config(new_cfg)
        print(f"Saved: {path}")
        return 0

    raise AssertionError("unreachable")


def _print_batch(result: BatchResult) -> None:
    print(f"manifest: {result.manifest_path}")
    for item in result.installed:
        print(f"installed: {item.key} {item.version} -> {item.install_path}")
    for failure in result.failed:
        print(f"failed: {failure.package} ({failure.message})")
    print("Done!")


def cmd_install(args: argparse.Namespace) -> int:
    options = _options_from_args(args)
    client = _make_runtime_client(args)
    try:
        manager = PackageManager(client, echo=_echo_stderr)
        if args.package:
            package, version = _split_package_and_version(args.package, args.version)
            result = manager.install_one(package, version, options)
        else:
            batch = manager.install_all(options)
    finally:
        client.close()

    if args.package:
        if args.json:
            print(json.dumps(_result_payload(result), indent=2, sort_keys=True))
            return 0
        print(f"installed: {result.key} {result.version}")
        print(f"download_url: {result.download_url}")
        print(f"path: {result.install_path}")
        return 0

    if args.json:
        payload = {
            "manifest_path": str(batch.manifest_path),
            "installed": [_result_payload(r) for r in batch.installed],
            "failed": [{"package": f.package, "error": f.message} for f in batch.failed],
        }
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        _print_batch(batch)
    return 1 if batch.failed else 0


def cmd_uninstall(args: argparse.Namespace) -> int:
    options = _options_from_args(args)
    result = PackageManager(echo=_echo_stderr).uninstall(args.package, options)

    if args.json:
        payload = {
            "package": result.package,
            "removed": [str(p) for p in result.removed],
            "manifest_updated": result.manifest_updated,
        }
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 0

    for path in result.removed:
        print(f"removed: {path}")
    if not result.removed:
        print(f"{result.package} is not installed.")
    print("Done!")
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    path = PackageManager().init(args.path)
    print(f"{path} was created.")
    return 0


def cmd_versions(args: argparse.Namespace) -> int:
    client = _make_runtime_client(args)
    try:
        versions = PackageManager(client, echo=_echo_stderr).versions(args.package, max_count=args.limit)
    finally:
        client.close()

    if args.json:
        print(json.dumps(versions, indent=2))
        return 0
    for v in versions:
        print(v)
    return 0


def _format_cause_chain(err: BaseException) -> list[str]:
    lines: list[str] = []
    cause = err.__cause__
    depth = 1
    while cause is not None:
        lines.append(f"  cause[{depth}]: {type(cause).__name__}: {cause}")
        cause = cause.__cause__
        depth += 1
    return lines


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.cmd in ("install", "i"):
            return cmd_install(args)
        if args.cmd in ("uninstall", "remove", "rm"):
            return cmd_uninstall(args)
        if args.cmd == "init":
            return cmd_init(args)
        if args.cmd == "versions":
            return cmd_versions(args)
        if args.cmd == "config":
            return cmd_config(args)
        raise AssertionError("unreachable")
    except GpmError as e:
        print(f"error: {e}", file=sys.stderr)
        if args.verbose_errors:
            chain = _format_cause_chain(e)
            if chain:
                print("error_details:", file=sys.stderr)
                for line in chain:
                    print(line, file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
