"""Minimal Discourse REST client used for version probes and changelog posts."""

import re
from typing import Any, Dict, Optional

import requests

from discourseupdater.errors import UpdaterError

_GENERATOR_META = re.compile(
    r"<meta[^>]*name=[\"']generator[\"'][^>]*content=[\"']([^\"']+)[\"']",
    re.IGNORECASE,
)


class DiscourseClient:
    """Talks to one Discourse install over HTTPS."""

    def __init__(self, install, requests_module=requests, timeout_seconds: float = 30.0):
        baseurl = (install.baseurl or "").rstrip("/")
        if not baseurl:
            raise UpdaterError(f"baseurl is required for {install.name}")

        self.install = install
        self.baseurl = baseurl
        self.requests = requests_module
        self.timeout_seconds = timeout_seconds

    def _headers(self) -> Dict[str, str]:
        if not self.install.has_api_credentials:
            return {}
        return {
            "Api-Key": self.install.api_key,
            "Api-Username": self.install.api_username,
        }

    def fetch_version(self) -> Optional[str]:
        """Returns the running Discourse version, preferring /about.json over the HTML generator tag."""
        last_error: Optional[Exception] = None

        try:
            response = self.requests.get(
                f"{self.baseurl}/about.json",
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            version = _about_version(response.json())
            if version:
                return version
        except (self.requests.RequestException, ValueError) as exc:
            last_error = exc

        try:
            response = self.requests.get(
                f"{self.baseurl}/",
                headers=self._headers(),
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            version = parse_generator_version(response.text)
            if version:
                return version
        except self.requests.RequestException as exc:
            last_error = exc

        if last_error is not None:
            raise UpdaterError(f"Version fetch failed for {self.install.name}: {last_error}")
        return None

    def create_post(self, topic_id: int, raw: str) -> int:
        try:
            response = self.requests.post(
                f"{self.baseurl}/posts.json",
                headers=self._headers(),
                data={"topic_id": str(topic_id), "raw": raw},
                timeout=self.timeout_seconds,
            )
        except self.requests.RequestException as exc:
            raise UpdaterError(f"Creating post failed for {self.install.name}: {exc}") from exc

        if not response.ok:
            raise UpdaterError(
                f"create post failed with {response.status_code}: {response.text}"
            )

        try:
            return int(response.json()["id"])
        except (ValueError, KeyError, TypeError) as exc:
            raise UpdaterError(f"Could not parse create post response: {exc}") from exc


def _about_version(payload: Any) -> Optional[str]:
    about = payload.get("about") if isinstance(payload, dict) else None
    if not isinstance(about, dict):
        return None
    version = about.get("version") or about.get("installed_version")
    if isinstance(version, (str, int, float)) and str(version).strip():
        return str(version).strip()
    return None


def parse_generator_version(html: str) -> Optional[str]:
    """Extracts `3.2.1` from `<meta name="generator" content="Discourse 3.2.1 - https://...">`."""
    match = _GENERATOR_META.search(html or "")
    if not match:
        return None
    content = match.group(1).strip()
    if not content.startswith("Discourse "):
        return None
    version = content[len("Discourse "):].split(" - ")[0].strip()
    return version or None
