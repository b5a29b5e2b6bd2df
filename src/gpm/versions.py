from __future__ import annotations

import re
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Callable

from .client import GitHostClient, GpmError, Listing, PackageRef

SHORT_SHA_LENGTH = 7

_TAG_PREFIX_RE = re.compile(r"^[vV](?=\d)")


class PackageNotFoundError(GpmError):
    pass


def _split_version(version: str) -> tuple[tuple[int, ...], tuple[str, ...] | None]:
    raw = version.strip()
    if not raw:
        raise ValueError("empty version")
    raw = raw.split("+", 1)[0]  # build metadata does not take part in ordering
    main_s, sep, pre_s = raw.partition("-")
    pre_parts = tuple(p for p in pre_s.split(".") if p) if sep else None
    main_parts = main_s.split(".")
    if any(not p.isdigit() for p in main_parts):
        raise ValueError(f"Unsupported version format: {version!r}")
    nums = [int(p) for p in main_parts]
    while len(nums) < 3:
        nums.append(0)
    return tuple(nums), pre_parts


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _compare_prerelease(pa: tuple[str, ...], pb: tuple[str, ...]) -> int:
    for x, y in zip(pa, pb):
        if x.isdigit() and y.isdigit():
            c = _cmp(int(x), int(y))
        elif x.isdigit():
            c = -1  # numeric identifiers sort before alphanumeric ones
        elif y.isdigit():
            c = 1
        else:
            c = _cmp(x, y)
        if c:
            return c
    return _cmp(len(pa), len(pb))


def _try_split(version: str) -> tuple[tuple[int, ...], tuple[str, ...] | None] | None:
    try:
        return _split_version(version)
    except ValueError:
        return None


def compare_versions(a: str, b: str) -> int:
    """
    Semantic-version comparison returning -1, 0 or 1. A release sorts above its own
    pre-releases (1.5.0 > 1.5.0-rc1). Strings that are not dotted numbers ("latest",
    "nightly") sort below every real version and compare as plain strings among themselves.
    """
    va, vb = _try_split(a), _try_split(b)
    if va is None or vb is None:
        if va is None and vb is None:
            return _cmp(a, b)
        return -1 if va is None else 1
    (ma, pa), (mb, pb) = va, vb
    if ma != mb:
        return _cmp(ma, mb)
    if pa is None or pb is None:
        return _cmp(pa is None, pb is None)
    return _compare_prerelease(pa, pb)


def strip_tag_prefix(tag: str) -> str:
    return _TAG_PREFIX_RE.sub("", tag, count=1)


def short_ref(sha: str) -> str:
    return "#" + sha[:SHORT_SHA_LENGTH]


def _commit_sha(item: Any) -> str | None:
    if isinstance(item, dict) and isinstance(item.get("sha"), str) and item["sha"]:
        return item["sha"]
    return None


def _commit_timestamp(item: Any) -> float | None:
    try:
        date = item["commit"]["author"]["date"]
    except (KeyError, TypeError):
        return None
    if not isinstance(date, str):
        return None
    try:
        dt = datetime.fromisoformat(date.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


class VersionResolver:
    """
    Lists installable versions of a package: release tags first (newest first), then
    commits that no tag points at (newest first).
    """

    def __init__(self, client: GitHostClient, *, echo: Callable[[str], None] | None = None) -> None:
        self._client = client
        self._echo = echo or (lambda _msg: None)

    def _checked(self, ref: PackageRef, what: str, listing: Listing) -> tuple[Any, ...]:
        if not listing.ok:
            self._echo(f"warning: could not list {what} for {ref.key}: {listing.error}")
        return listing.items

    def _tags(self, ref: PackageRef) -> tuple[list[str], set[str]]:
        versions: list[str] = []
        tagged: set[str] = set()
        for item in self._checked(ref, "tags", self._client.list_tags(ref)):
            if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                continue
            versions.append(strip_tag_prefix(item["name"]))
            commit = item.get("commit")
            sha = _commit_sha(commit)
            if sha:
                tagged.add(short_ref(sha))
        versions.sort(key=cmp_to_key(compare_versions), reverse=True)
        # "v1.0" and "1.0" collapse to the same version once the prefix is gone.
        return list(dict.fromkeys(versions)), tagged

    def _commits(self, ref: PackageRef, tagged: set[str]) -> list[str]:
        dated = [
            (_commit_timestamp(item), sha)
            for item in self._checked(ref, "commits", self._client.list_commits(ref))
            if (sha := _commit_sha(item))
        ]
        # Newest first; commits without a readable date go last.
        dated.sort(key=lambda pair: (pair[0] is None, -(pair[0] or 0.0)))

        out: list[str] = []
        seen = set(tagged)
        for _, sha in dated:
            token = short_ref(sha)
            if token in seen:
                continue
            seen.add(token)
            out.append(token)
        return out

    def resolve(self, ref: PackageRef, max_count: int | None = None) -> list[str]:
        limit = max_count if max_count and max_count > 0 else None

        tags, tagged = self._tags(ref)
        if limit is not None:
            tags = tags[:limit]
            if len(tags) >= limit:
                return tags

        commits = self._commits(ref, tagged)
        if limit is not None:
            commits = commits[: limit - len(tags)]

        versions = tags + commits
        if not versions:
            raise PackageNotFoundError(f"Could not find the package {ref.key}.")
        return versions
