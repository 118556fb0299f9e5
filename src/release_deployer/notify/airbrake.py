"""Airbrake deploy notifications."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Optional

import requests

from ..errors import NotificationError
from ..utils.logging import get_logger

if TYPE_CHECKING:
    from ..config import NotifyConfig

logger = get_logger(__name__)


class AirbrakeNotifier:
    """Records a deploy with Airbrake's v4 deploy API.

    Any failure surfaces as :class:`NotificationError`; deciding whether that
    matters is left to the caller.
    """

    def __init__(self, config: "NotifyConfig", session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

        proxy = config.proxy or os.environ.get("HTTPS_PROXY") or os.environ.get("HTTP_PROXY")
        if proxy:
            self.session.proxies = {"http": proxy, "https": proxy}
            logger.info("Airbrake notifier using proxy: %s", proxy)

    @property
    def enabled(self) -> bool:
        return bool(self.config.enabled and self.config.api_key and self.config.project_id)

    def deploy_url(self) -> str:
        host = self.config.host.rstrip("/")
        return f"{host}/api/v4/projects/{self.config.project_id}/deploys"

    def notify(self, revision: str, repo: str, environment: str, user: Optional[str]) -> None:
        if not self.enabled:
            logger.debug("Airbrake notifications disabled; skipping deploy notice")
            return

        body = {
            "environment": environment,
            "username": user or "",
            "repository": repo,
            "revision": revision,
        }
        try:
            response = self.session.post(
                self.deploy_url(),
                params={"key": self.config.api_key},
                json=body,
                timeout=self.config.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            raise NotificationError(f"Airbrake deploy notification failed: {exc}") from exc
        logger.info("📣 Notified Airbrake of %s deploy (%s)", environment, revision[:12])
