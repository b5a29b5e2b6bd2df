from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator
from urllib.parse import quote, urlsplit

import httpx

from ._version import __version__
from .config import DEFAULT_API_URL, DEFAULT_ARCHIVE_URL, DEFAULT_TIMEOUT_S


class GpmError(RuntimeError):
    pass


class GpmWriteError(GpmError):
    pass


class GpmHTTPError(GpmError):
    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(status_code, url)
        self.status_code = status_code
        self.url = url

    def __str__(self) -> str:
        return f"HTTP {self.status_code} for {self.url}"


@dataclass(frozen=True)
class PackageRef:
    author: str
    name: str

    @property
    def key(self) -> str:
        return f"{self.author}/{self.name}"

    def __str__(self) -> str:
        return self.key


def parse_package_ref(value: str) -> PackageRef:
    raw = value.strip()
    if "/" not in raw:
        raise GpmError(f"Invalid package identifier {value!r}. Expected <author>/<name>.")
    author, name = raw.split("/", 1)
    author = author.strip()
    name = name.strip()
    if not author or not name:
        raise GpmError(f"Invalid package identifier {value!r}. Expected <author>/<name>.")
    return PackageRef(author=author, name=name)


@dataclass(frozen=True)
class Listing:
    """
    Outcome of a remote listing call.

    `error` is set when the call itself failed (network, HTTP status, bad payload).
    An empty `items` with no error means the host answered with nothing.
    """

    items: tuple[Any, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def empty(self) -> bool:
        return not self.items


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}".lower()


class GitHostClient:
    """
    Thin wrapper over the source-hosting service: tag/commit listings and archive downloads.
    """

    def __init__(
        self,
        *,
        api_url: str = DEFAULT_API_URL,
        archive_url: str = DEFAULT_ARCHIVE_URL,
        token: str | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        user_agent: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.archive_url = archive_url.rstrip("/")
        self.token = token
        self.timeout_s = timeout_s
        self.user_agent = user_agent or f"gpm/{__version__}"

        self._http = httpx.Client(
            timeout=timeout_s,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "GitHostClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def repo_api_url(self, ref: PackageRef, endpoint: str) -> str:
        return f"{self.api_url}/repos/{quote(ref.author, safe='')}/{quote(ref.name, safe='')}/{endpoint}"

    def archive_base(self, ref: PackageRef) -> str:
        return f"{self.archive_url}/{ref.author}/{ref.name}/archive"

    def _headers_for(self, url: str) -> dict[str, str]:
        headers: dict[str, str] = {}
        # The token is only meant for the API host; archive CDNs must not see it.
        if self.token and _origin(url) == _origin(self.api_url):
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get_listing(self, url: str) -> Listing:
        try:
            resp = self._http.get(url, headers=self._headers_for(url))
        except httpx.HTTPError as e:
            return Listing(error=f"Request to {url} failed: {e}")

        if resp.status_code >= 400:
            return Listing(error=f"HTTP {resp.status_code} for {url}")
        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return Listing(error=f"Invalid JSON from {url}")
        if not isinstance(data, list):
            return Listing(error=f"Unexpected payload from {url} (expected a list)")
        return Listing(items=tuple(data))

    def list_tags(self, ref: PackageRef) -> Listing:
        return self.get_listing(self.repo_api_url(ref, "tags"))

    def list_commits(self, ref: PackageRef) -> Listing:
        return self.get_listing(self.repo_api_url(ref, "commits"))

    @contextmanager
    def stream(self, url: str) -> Iterator[httpx.Response]:
        """
        Open `url` for streaming. Raises GpmHTTPError on an error status and GpmError if
        the connection could not be made.
        """
        try:
            with self._http.stream("GET", url, headers=self._headers_for(url)) as resp:
                if resp.status_code >= 400:
                    raise GpmHTTPError(resp.status_code, url)
                yield resp
        except httpx.HTTPError as e:
            raise GpmError(f"Request to {url} failed: {e}") from e
