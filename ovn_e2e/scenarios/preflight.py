"""
Pre-flight check: the environment running the harness must itself reach the
internet, otherwise a failed continuity probe says nothing about the SDN.
"""

import asyncio
import logging

import requests

from ovn_e2e.errors import PreflightError

logger = logging.getLogger(__name__)


async def check_internet_egress(url: str = "http://google.com", timeout: float = 10.0):
    try:
        response = await asyncio.to_thread(requests.get, url, timeout=timeout)
    except requests.RequestException as e:
        raise PreflightError("pre-flight connectivity check", url, e) from e

    if response.status_code != 200:
        raise PreflightError(
            "pre-flight connectivity check", url, f"unexpected status {response.status_code}"
        )
    logger.info(f"Pre-flight check passed: {url} returned 200")
