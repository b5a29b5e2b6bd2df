from __future__ import annotations

import shutil
from pathlib import Path


def ensure_exists(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def ensure_empty_dir(path: Path) -> Path:
    """Create `path` as a directory, removing anything already inside it."""
    if path.is_dir() and not path.is_symlink():
        for child in path.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
        return path
    if path.exists() or path.is_symlink():
        path.unlink()
    path.mkdir(parents=True)
    return path


def remove_tree(path: Path) -> bool:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    if path.exists() or path.is_symlink():
        path.unlink()
        return True
    return False


def remove_dir_if_empty(path: Path) -> bool:
    if not path.is_dir():
        return False
    try:
        next(path.iterdir())
    except StopIteration:
        path.rmdir()
        return True
    return False
