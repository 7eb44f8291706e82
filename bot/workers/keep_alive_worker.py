"""
Keep-alive worker.

Free hosting tiers put the web service to sleep after a period without inbound
requests, which would also disconnect the Discord client. This worker pings the
service's own public URL on a fixed interval so it never goes idle.

Configuration:
- RENDER_EXTERNAL_URL: public host (or URL) of this service. Disabled if unset.
- KEEP_ALIVE_INTERVAL: seconds between pings (default: 840, 14 minutes)
"""

import os
import logging

import requests

from utils.scheduler import run_on_schedule

RENDER_EXTERNAL_URL = os.getenv("RENDER_EXTERNAL_URL")
KEEP_ALIVE_INTERVAL = int(os.getenv("KEEP_ALIVE_INTERVAL", "840"))
KEEP_ALIVE_TIMEOUT = 10

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"http://{url}"


class KeepAlivePinger:
    def __init__(self, url: str, timeout: int = KEEP_ALIVE_TIMEOUT):
        self.url = normalize_url(url)
        self.timeout = timeout

    def ping(self) -> bool:
        try:
            response = requests.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            logger.debug(f"Keep-alive ping to {self.url} succeeded")
            return True
        except requests.exceptions.RequestException as e:
            logger.warning(f"Keep-alive ping to {self.url} failed: {e}")
            return False


def get_keep_alive_scheduler(
    url: str | None = RENDER_EXTERNAL_URL,
    interval: int = KEEP_ALIVE_INTERVAL,
) -> tuple[callable, callable]:
    if not url:
        logger.info("RENDER_EXTERNAL_URL not set, keep-alive ping disabled")
        return (lambda: None), (lambda: None)
    pinger = KeepAlivePinger(url)
    return run_on_schedule(pinger.ping, interval)
