from __future__ import annotations

import os
import re
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from typing import Iterable

from .client import GpmError
from .fs import ensure_empty_dir, ensure_exists, remove_dir_if_empty

ARCHIVE_EXTENSION = "zip"

# Archive exports from the host wrap the repository in one "<name>-<ref>/" folder.
STRIP_COMPONENTS = 1

# Host metadata (workflows, issue templates) is never installed.
ALWAYS_EXCLUDED = frozenset({".github"})


class ExtractError(GpmError):
    pass


def _normalize_extensions(include: Iterable[str]) -> frozenset[str]:
    return frozenset(e.strip().lstrip(".").lower() for e in include if e.strip().lstrip("."))


def _strip(name: str, components: int) -> PurePosixPath | None:
    parts = PurePosixPath(name).parts[components:]
    if not parts:
        return None
    return PurePosixPath(*parts)


class ArchiveInstaller:
    def __init__(self, *, archive_extension: str = ARCHIVE_EXTENSION, strip_components: int = STRIP_COMPONENTS) -> None:
        self.archive_extension = archive_extension
        self.strip_components = strip_components

    def is_archive(self, staged: Path) -> bool:
        return staged.suffix.lower() == f".{self.archive_extension}"

    def _wanted(self, rel: PurePosixPath, *, is_dir: bool, include: frozenset[str], exclude: re.Pattern[str] | None) -> bool:
        if any(part in ALWAYS_EXCLUDED for part in rel.parts):
            return False
        if exclude is not None and exclude.search(rel.as_posix()):
            return False
        if include and not is_dir:
            return rel.suffix.lstrip(".").lower() in include
        return True

    def extract(
        self,
        staged: Path,
        dest: Path,
        *,
        include: Iterable[str] = (),
        exclude: str | None = None,
    ) -> list[PurePosixPath]:
        extensions = _normalize_extensions(include)
        try:
            exclude_re = re.compile(exclude) if exclude else None
        except re.error as e:
            raise ExtractError(f"Invalid exclude pattern {exclude!r}: {e}") from e

        written: list[PurePosixPath] = []
        base = dest.resolve()
        try:
            with zipfile.ZipFile(staged, "r") as zf:
                for info in zf.infolist():
                    name = info.filename
                    if not name:
                        continue
                    if name.startswith("/") or re.match(r"^[A-Za-z]:", name):
                        raise ExtractError(f"Archive {staged} contains an absolute path entry: {name!r}")
                    rel = _strip(name, self.strip_components)
                    if rel is None:
                        continue
                    if not self._wanted(rel, is_dir=info.is_dir(), include=extensions, exclude=exclude_re):
                        continue

                    target = (dest / rel).resolve()
                    if not str(target).startswith(str(base) + os.sep):
                        raise ExtractError(f"Archive {staged} contains an invalid path entry: {name!r}")

                    if info.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue

                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info, "r") as src, target.open("wb") as out:
                        shutil.copyfileobj(src, out)
                    written.append(rel)
        except zipfile.BadZipFile as e:
            raise ExtractError(f"Could not read archive {staged}: {e}") from e
        except OSError as e:
            raise ExtractError(f"Could not extract {staged} into {dest}: {e}") from e
        return written

    def install(
        self,
        staged: Path,
        package_dir: Path,
        *,
        include: Iterable[str] = (),
        exclude: str | None = None,
    ) -> Path:
        """
        Put the staged download in place and return where it ended up: `package_dir` for
        archives, or a single `<name>.<ext>` file beside it for any other payload.
        """
        if self.is_archive(staged):
            try:
                ensure_empty_dir(package_dir)
            except OSError as e:
                raise ExtractError(f"Could not prepare {package_dir}: {e}") from e
            self.extract(staged, package_dir, include=include, exclude=exclude)
            staged.unlink(missing_ok=True)
            return package_dir

        target = package_dir.with_name(package_dir.name + staged.suffix)
        try:
            ensure_exists(target.parent)
            if target.is_dir():
                raise ExtractError(f"Cannot install {staged.name}: {target} is a directory.")
            target.unlink(missing_ok=True)
            shutil.move(str(staged), str(target))
        except OSError as e:
            raise ExtractError(f"Could not move {staged} to {target}: {e}") from e
        return target


def cleanup_staging(staged: Path, staging_root: Path) -> None:
    """Drop one package's staged file and its author folder under `staging_root` if emptied."""
    staged.unlink(missing_ok=True)
    parent = staged.parent
    while parent != staging_root and staging_root in parent.parents:
        if not remove_dir_if_empty(parent):
            break
        parent = parent.parent
