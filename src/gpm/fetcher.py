from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .client import GitHostClient, GpmError, GpmWriteError, PackageRef
from .fs import ensure_exists
from .specifier import Specifier, candidate_urls, parse_specifier, staging_filename
from .versions import PackageNotFoundError, VersionResolver

SUGGESTION_COUNT = 5


class DownloadFailedError(GpmError):
    pass


class VersionNotFoundError(DownloadFailedError):
    def __init__(self, message: str, *, available: list[str]) -> None:
        super().__init__(message)
        self.available = available


@dataclass(frozen=True)
class StagedArchive:
    path: Path
    download_url: str
    specifier: Specifier


class ArchiveFetcher:
    def __init__(
        self,
        client: GitHostClient,
        resolver: VersionResolver,
        *,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        self._client = client
        self._resolver = resolver
        self._echo = echo or (lambda _msg: None)

    def resolve_specifier(self, ref: PackageRef, specifier: Specifier | None) -> Specifier:
        if specifier is not None:
            return specifier
        latest = self._resolver.resolve(ref, max_count=1)
        resolved = parse_specifier(latest[0])
        if resolved is None:  # pragma: no cover - resolver never yields blanks
            raise PackageNotFoundError(f"Could not find the package {ref.key}.")
        return resolved

    def staging_path(self, ref: PackageRef, specifier: Specifier, staging_root: Path) -> Path:
        return staging_root / ref.author / staging_filename(specifier, ref.name)

    def _download(self, url: str, dest: Path) -> bool:
        """Stream `url` into `dest`. Returns False if the URL could not be fetched."""
        try:
            with self._client.stream(url) as resp:
                ensure_exists(dest.parent)
                dest.unlink(missing_ok=True)
                with dest.open("wb") as out:
                    for chunk in resp.iter_bytes():
                        out.write(chunk)
        except GpmError as e:
            dest.unlink(missing_ok=True)
            self._echo(f"   {e}")
            return False
        except OSError as e:
            dest.unlink(missing_ok=True)
            raise GpmWriteError(f"Could not write {dest}: {e}") from e
        return True

    def fetch(self, ref: PackageRef, specifier: Specifier | None, staging_root: Path) -> StagedArchive:
        spec = self.resolve_specifier(ref, specifier)
        dest = self.staging_path(ref, spec, staging_root)

        for url in candidate_urls(spec, self._client.archive_base(ref)):
            self._echo(f" - Downloading {ref.key} ({url})...")
            if self._download(url, dest):
                return StagedArchive(path=dest, download_url=url, specifier=spec)

        try:
            available = self._resolver.resolve(ref, max_count=SUGGESTION_COUNT)
        except PackageNotFoundError as e:
            raise PackageNotFoundError(f"Could not find the package {ref.key}.") from e
        raise VersionNotFoundError(
            f"Unable to find version {spec} of package {ref.key}. "
            f"Did you mean one of: {', '.join(available)}?",
            available=available,
        )
