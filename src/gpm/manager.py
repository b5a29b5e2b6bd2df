from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from .client import GitHostClient, GpmError, PackageRef, parse_package_ref
from .fetcher import ArchiveFetcher
from .fs import remove_dir_if_empty, remove_tree
from .installer import ArchiveInstaller, cleanup_staging
from .manifest import create_manifest, find_manifest, load_manifest, manifest_location, remove_dependency, set_dependency
from .specifier import Specifier, parse_specifier
from .versions import VersionResolver

INSTALL_DIRNAME = "gpm_modules"
STAGING_DIRNAME = ".tmp"


@dataclass(frozen=True)
class InstallOptions:
    manifest_path: str | Path | None = None  # --path: manifest file or its directory
    install_root: str | Path | None = None  # --install-path; default <manifest dir>/gpm_modules
    save: bool = False
    include: tuple[str, ...] = ()
    exclude: str | None = None


@dataclass(frozen=True)
class InstallResult:
    name: str
    version: str
    author: str
    download_url: str
    install_path: Path

    @property
    def key(self) -> str:
        return f"{self.author}/{self.name}"


@dataclass(frozen=True)
class PackageFailure:
    package: str
    message: str


@dataclass(frozen=True)
class BatchResult:
    installed: tuple[InstallResult, ...]
    failed: tuple[PackageFailure, ...]
    manifest_path: Path


@dataclass(frozen=True)
class UninstallResult:
    package: str
    removed: tuple[Path, ...]
    manifest_updated: bool


def _specifier_text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


class PackageManager:
    def __init__(
        self,
        client: GitHostClient | None = None,
        *,
        installer: ArchiveInstaller | None = None,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        self._echo = echo or (lambda _msg: None)
        self.client = client
        self.resolver: VersionResolver | None = None
        self.fetcher: ArchiveFetcher | None = None
        if client is not None:
            self.resolver = VersionResolver(client, echo=self._echo)
            self.fetcher = ArchiveFetcher(client, self.resolver, echo=self._echo)
        self.installer = installer or ArchiveInstaller()

    def _remote(self) -> tuple[VersionResolver, ArchiveFetcher]:
        # init and uninstall are local; only version listing and downloads reach the host.
        if self.resolver is None or self.fetcher is None:
            raise GpmError("No host client configured; cannot reach the package host.")
        return self.resolver, self.fetcher

    @staticmethod
    def install_root(options: InstallOptions) -> Path:
        if options.install_root is not None:
            return Path(options.install_root).expanduser()
        return manifest_location(options.manifest_path).parent / INSTALL_DIRNAME

    def staging_root(self, options: InstallOptions) -> Path:
        return self.install_root(options) / STAGING_DIRNAME

    def versions(self, package: str, max_count: int | None = None) -> list[str]:
        resolver, _ = self._remote()
        return resolver.resolve(parse_package_ref(package), max_count=max_count)

    def init(self, path: str | Path | None = None) -> Path:
        return create_manifest(manifest_location(path))

    def _install(self, ref: PackageRef, specifier: Specifier | None, options: InstallOptions) -> InstallResult:
        staging_root = self.staging_root(options)
        package_dir = self.install_root(options) / ref.author / ref.name

        _, fetcher = self._remote()
        staged = fetcher.fetch(ref, specifier, staging_root)
        try:
            self._echo(f" - Extracting {staged.path}...")
            install_path = self.installer.install(
                staged.path,
                package_dir,
                include=options.include,
                exclude=options.exclude,
            )
        finally:
            cleanup_staging(staged.path, staging_root)

        return InstallResult(
            name=ref.name,
            version=str(staged.specifier),
            author=ref.author,
            download_url=staged.download_url,
            install_path=install_path,
        )

    def install_one(self, package: str, specifier: str | None, options: InstallOptions) -> InstallResult:
        ref = parse_package_ref(package)
        try:
            result = self._install(ref, parse_specifier(specifier), options)
        finally:
            remove_dir_if_empty(self.staging_root(options))

        if options.save:
            path = find_manifest(options.manifest_path)
            set_dependency(path, ref.key, result.version)
            self._echo(f"{path} was updated.")
        return result

    def install_all(self, options: InstallOptions) -> BatchResult:
        path = find_manifest(options.manifest_path)
        self._echo(f"Loading {path}...")
        manifest = load_manifest(path)

        entries = list(manifest.dependencies.items())
        self._echo(f"{len(entries)} dependencies found.")

        per_package = InstallOptions(
            manifest_path=path,
            install_root=options.install_root if options.install_root is not None else path.parent / INSTALL_DIRNAME,
            save=False,
            include=options.include,
            exclude=options.exclude,
        )
        installed: list[InstallResult] = []
        failed: list[PackageFailure] = []
        try:
            for package, value in entries:
                try:
                    ref = parse_package_ref(package)
                    installed.append(self._install(ref, parse_specifier(_specifier_text(value)), per_package))
                except GpmError as e:
                    self._echo(f"error: {e}")
                    failed.append(PackageFailure(package=package, message=str(e)))
        finally:
            # Anything left under .tmp (this run or a crashed earlier one) is scratch.
            remove_tree(self.staging_root(per_package))

        return BatchResult(installed=tuple(installed), failed=tuple(failed), manifest_path=path)

    def uninstall(self, package: str, options: InstallOptions) -> UninstallResult:
        ref = parse_package_ref(package)
        author_dir = self.install_root(options) / ref.author
        package_dir = author_dir / ref.name

        targets: list[Path] = []
        if package_dir.exists() or package_dir.is_symlink():
            targets.append(package_dir)
        if author_dir.is_dir():
            # Raw-file installs live beside the package folders as <name>.<ext>.
            targets.extend(p for p in sorted(author_dir.glob(f"{ref.name}.*")) if p.is_file())

        removed: list[Path] = []
        for target in targets:
            remove_tree(target)
            removed.append(target)
        if removed:
            remove_dir_if_empty(author_dir)

        manifest_updated = False
        if options.save:
            path = find_manifest(options.manifest_path)
            manifest_updated = remove_dependency(path, ref.key)
            if manifest_updated:
                self._echo(f"{path} was updated.")

        return UninstallResult(package=ref.key, removed=tuple(removed), manifest_updated=manifest_updated)
