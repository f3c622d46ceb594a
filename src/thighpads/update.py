"""Update checker: asks the GitHub releases API for the latest tag.

The time of the last check is persisted in <home>/lastupdate so a background
probe hits the network at most once per CHECK_INTERVAL.
"""

from __future__ import annotations

import json
import logging
import re
import urllib.error
import urllib.request
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from thighpads.config import TPConfig

logger = logging.getLogger("thighpads.update")

RELEASES_URL = "https://api.github.com/repos/s42yt/thighpads/releases/latest"
CHECK_INTERVAL = timedelta(days=7)
TIMEOUT = 10


class UpdateError(Exception):
    pass


@dataclass(frozen=True)
class UpdateInfo:
    available: bool
    version: str = ""
    url: str = ""


def parse_version(text: str) -> tuple[int, ...]:
    """'v1.2.10' -> (1, 2, 10). Non-numeric suffixes are ignored."""
    parts = []
    for piece in text.strip().lstrip("vV").split("."):
        m = re.match(r"\d+", piece)
        if m is None:
            break
        parts.append(int(m.group()))
    return tuple(parts)


def is_newer(latest: str, current: str) -> bool:
    return parse_version(latest) > parse_version(current)


class UpdateChecker:
    def __init__(self, cfg: TPConfig, current_version: str, *, url: str = RELEASES_URL) -> None:
        self.cfg = cfg
        self.current_version = current_version
        self.url = url

    def last_check(self) -> datetime | None:
        try:
            raw = self.cfg.last_update_path.read_text().strip()
            return datetime.fromisoformat(raw)
        except (OSError, ValueError):
            return None

    def _record_check(self, when: datetime) -> None:
        try:
            self.cfg.last_update_path.parent.mkdir(parents=True, exist_ok=True)
            self.cfg.last_update_path.write_text(when.isoformat())
        except OSError as exc:
            logger.warning("could not record update check: %s", exc)

    def due(self, now: datetime | None = None) -> bool:
        last = self.last_check()
        if last is None:
            return True
        if last.tzinfo is None:
            last = last.replace(tzinfo=UTC)
        return (now or datetime.now(UTC)) - last >= CHECK_INTERVAL

    def _fetch(self) -> dict[str, Any]:
        req = urllib.request.Request(  # noqa: S310
            self.url,
            headers={"Accept": "application/vnd.github+json", "User-Agent": "thighpads"},
        )
        try:
            with urllib.request.urlopen(req, timeout=TIMEOUT) as resp:  # noqa: S310
                data = json.loads(resp.read())
        except (urllib.error.URLError, OSError) as exc:
            raise UpdateError(f"Failed to check for updates: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise UpdateError(f"Failed to parse update info: {exc}") from exc
        if not isinstance(data, dict):
            raise UpdateError("Failed to parse update info: unexpected response")
        return data

    def check_for_update(self, force: bool = False) -> UpdateInfo:
        """Return what the latest release is, or UpdateInfo(False) when not due."""
        now = datetime.now(UTC)
        if not force and not self.due(now):
            return UpdateInfo(available=False)

        self._record_check(now)
        release = self._fetch()
        if release.get("prerelease") or release.get("draft"):
            return UpdateInfo(available=False)

        tag = str(release.get("tag_name") or "")
        if not tag:
            raise UpdateError("Failed to parse update info: release has no tag")
        latest = tag.lstrip("vV")
        if not is_newer(latest, self.current_version):
            return UpdateInfo(available=False, version=latest)

        url = str(release.get("html_url") or "")
        logger.info("update available: %s -> %s", self.current_version, latest)
        return UpdateInfo(available=True, version=latest, url=url)
