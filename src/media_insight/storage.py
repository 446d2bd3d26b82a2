from __future__ import annotations

from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import requests


class BlobStorage(Protocol):
    def download(self, key: str) -> bytes:
        """Return the full contents of the object stored under ``key``."""


class LocalDirectoryStorage:
    """Serves objects from files below ``root``."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def download(self, key: str) -> bytes:
        target = (self.root / key).resolve()
        if target != self.root and self.root not in target.parents:
            raise ValueError(f"Storage key escapes the storage root: {key}")
        return target.read_bytes()


class HttpStorage:
    """Downloads objects from ``{base_url}/{key}`` over HTTP(S)."""

    def __init__(self, base_url: str = "", *, timeout: int = 300, headers: dict[str, str] | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}

    def url_for(self, key: str) -> str:
        if not self.base_url:
            return key
        return f"{self.base_url}/{quote(key.lstrip('/'))}"

    def download(self, key: str) -> bytes:
        response = requests.get(self.url_for(key), headers=self.headers, timeout=self.timeout)
        response.raise_for_status()
        return response.content
