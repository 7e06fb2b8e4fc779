# -*- coding: utf-8 -*-

"""
Direct image-link probe (sync, requests).

A link is considered a live image when:
- HTTP 200
- Content-Type is image/png
- body size differs from Imgur's 503-byte "removed" placeholder
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

REMOVED_PLACEHOLDER_SIZE = 503


def build_requests_session(timeout_s: float, max_retries: int) -> requests.Session:
    """requests.Session with retry for transient HTTP issues and a default timeout."""
    session = requests.Session()
    retry = Retry(
        total=max_retries,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.request = _wrap_timeout(session.request, timeout_s)
    return session


def _wrap_timeout(func, timeout_s: float):
    def wrapped(*args, **kwargs):
        kwargs.setdefault("timeout", timeout_s)
        return func(*args, **kwargs)
    return wrapped


def check_link(
    session: requests.Session,
    link: str,
    expected_placeholder_size: int = REMOVED_PLACEHOLDER_SIZE,
    logger: Optional[logging.Logger] = None,
) -> bool:
    log = logger or logging.getLogger(__name__)
    try:
        resp = session.get(link)
    except requests.RequestException as e:
        log.error("Got error for %s: %s: %s", link, type(e).__name__, e)
        return False

    if resp.status_code != 200:
        log.error("Request failed for %s. Status code: %s", link, resp.status_code)
        return False

    content_type = resp.headers.get("Content-Type", "")
    if not re.match(r"^image/png", content_type):
        log.error("Invalid content-type for %s. Expected image/png but received %s", link, content_type)
        return False

    return len(resp.content) != expected_placeholder_size
