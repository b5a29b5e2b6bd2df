"""
Version specifiers as they appear in gpm.json, parsed once into one of four forms:

    https://host/file.zip   UrlSpecifier     downloaded verbatim
    #1a2b3c4                CommitSpecifier  archive of a commit (or any ref the host accepts)
    dev-main                BranchSpecifier  archive of a branch head
    1.2.3                   TagSpecifier     archive of a release tag, with or without a "v"

An empty specifier parses to None and means "newest available version".
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Union
from urllib.parse import urlsplit


@dataclass(frozen=True)
class UrlSpecifier:
    url: str

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class CommitSpecifier:
    ref: str

    def __str__(self) -> str:
        return f"#{self.ref}"


@dataclass(frozen=True)
class BranchSpecifier:
    branch: str

    def __str__(self) -> str:
        return f"dev-{self.branch}"


@dataclass(frozen=True)
class TagSpecifier:
    version: str

    def __str__(self) -> str:
        return self.version


Specifier = Union[UrlSpecifier, CommitSpecifier, BranchSpecifier, TagSpecifier]


def parse_specifier(value: str | None) -> Specifier | None:
    raw = (value or "").strip()
    if not raw:
        return None
    if raw.lower().startswith(("http://", "https://")):
        return UrlSpecifier(url=raw)
    if raw.startswith("#"):
        return CommitSpecifier(ref=raw[1:])
    if raw.startswith("dev-"):
        return BranchSpecifier(branch=raw[4:])
    return TagSpecifier(version=raw)


def candidate_urls(spec: Specifier, archive_base: str) -> list[str]:
    """
    Download URLs for `spec`, in the order they should be tried. `archive_base` is the
    package's archive root, e.g. https://github.com/<author>/<name>/archive.
    """
    base = archive_base.rstrip("/")
    if isinstance(spec, UrlSpecifier):
        return [spec.url]
    if isinstance(spec, CommitSpecifier):
        return [f"{base}/{spec.ref}.zip"]
    if isinstance(spec, BranchSpecifier):
        return [f"{base}/refs/heads/{spec.branch}.zip"]
    # Release tags are named "1.2.3" in some repositories and "v1.2.3" in others.
    return [f"{base}/refs/tags/{spec.version}.zip", f"{base}/refs/tags/v{spec.version}.zip"]


def staging_filename(spec: Specifier, package_name: str, *, archive_extension: str = "zip") -> str:
    if isinstance(spec, UrlSpecifier):
        name = PurePosixPath(urlsplit(spec.url).path).name
        if name:
            return name
    return f"{package_name}.{archive_extension}"
