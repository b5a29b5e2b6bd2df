from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .client import GpmError, GpmWriteError

MANIFEST_FILENAME = "gpm.json"
ALT_MANIFEST_FILENAME = ".gpm.json"


class ManifestNotFoundError(GpmError):
    pass


class ManifestInvalidError(GpmError):
    def __init__(self, message: str, *, reason: str) -> None:
        super().__init__(message)
        self.reason = reason  # "invalid-json" | "not-an-object" | "missing-dependencies"


class ManifestAlreadyExistsError(GpmError):
    pass


class ManifestWriteError(GpmWriteError):
    pass


@dataclass
class Manifest:
    path: Path
    document: dict[str, Any] = field(default_factory=lambda: {"dependencies": {}})

    @property
    def dependencies(self) -> dict[str, Any]:
        return self.document["dependencies"]


def manifest_location(path: str | Path | None = None) -> Path:
    """
    Where the manifest lives (or would live) for a --path argument. Does not require
    the file to exist.
    """
    if path is None:
        default = Path(MANIFEST_FILENAME)
        alt = Path(ALT_MANIFEST_FILENAME)
        if not default.is_file() and alt.is_file():
            return alt
        return default

    p = Path(path).expanduser()
    if p.is_dir():
        return p / MANIFEST_FILENAME
    if p.is_file() or p.suffix.lower() == ".json":
        return p
    return p / MANIFEST_FILENAME


def find_manifest(path: str | Path | None = None) -> Path:
    found = manifest_location(path)
    if path is None and not found.is_file():
        raise ManifestNotFoundError(
            f"No {MANIFEST_FILENAME} found in the current directory. Run `gpm init` or pass --path."
        )
    return found


def load_manifest(path: Path) -> Manifest:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ManifestNotFoundError(f"Could not read manifest file ({path}): file does not exist.") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestNotFoundError(f"Could not read manifest file ({path}): {e}") from e

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestInvalidError(f"Invalid manifest file ({path}): {e}", reason="invalid-json") from e
    if not isinstance(raw, dict):
        raise ManifestInvalidError(
            f"Invalid manifest file ({path}): top level must be an object.", reason="not-an-object"
        )
    if not isinstance(raw.get("dependencies"), dict):
        raise ManifestInvalidError(
            f"Invalid manifest file ({path}): missing \"dependencies\" object.", reason="missing-dependencies"
        )
    return Manifest(path=path, document=raw)


def dump_manifest(manifest: Manifest) -> str:
    # json.dumps never escapes "/", and ensure_ascii=False keeps the file UTF-8 literal.
    return json.dumps(manifest.document, indent=4, ensure_ascii=False) + "\n"


def save_manifest(manifest: Manifest) -> Path:
    path = manifest.path
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(dump_manifest(manifest), encoding="utf-8")
        tmp.replace(path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise ManifestWriteError(f"Could not write manifest file ({path}): {e}") from e
    return path


def create_manifest(path: Path) -> Path:
    if path.exists():
        raise ManifestAlreadyExistsError(f"{path} already exists.")
    return save_manifest(Manifest(path=path))


def set_dependency(path: Path, package: str, specifier: str) -> Manifest:
    manifest = load_manifest(path)
    manifest.dependencies[package] = specifier
    save_manifest(manifest)
    return manifest


def remove_dependency(path: Path, package: str) -> bool:
    manifest = load_manifest(path)
    if package not in manifest.dependencies:
        return False
    del manifest.dependencies[package]
    save_manifest(manifest)
    return True
