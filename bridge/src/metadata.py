"""
Best-effort device metadata lookup for discovery enrichment.

Neurio sensors serve a small HTML status page at their root URL whose first
``.col-sm-6`` block lists ``Key: Value`` lines separated by ``<br>``. The
hardware and firmware versions are scraped from that block.

The lookup is isolated behind :class:`DeviceMetadataFetcher` so discovery
generation does not depend on the scraping detail. Any failure (timeout,
HTTP error, missing block, missing field) yields an empty or partial
:class:`~bridge.src.models.DeviceMetadata`; nothing is ever raised.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from bs4 import BeautifulSoup

from bridge.src.models import DeviceMetadata

logger = logging.getLogger(__name__)

METADATA_TIMEOUT_S: float = 1.5

_INFO_SELECTOR = ".col-sm-6"
_HARDWARE_KEY = "Hardware Version"
_FIRMWARE_KEY = "Firmware Version"


class DeviceMetadataFetcher(Protocol):
    """Fetches optional hardware/firmware strings for a sensor host."""

    async def fetch(self, host: str) -> DeviceMetadata: ...


def parse_device_metadata(html: str) -> DeviceMetadata:
    """Extract hardware and firmware versions from a sensor status page.

    Args:
        html: Body of the sensor's root page.

    Returns:
        Metadata with whichever fields were found.
    """
    soup = BeautifulSoup(html, "html.parser")
    block = soup.select_one(_INFO_SELECTOR)
    if block is None:
        return DeviceMetadata()

    # Lines are delimited by <br>; markup inside a line is flattened.
    for br in block.find_all("br"):
        br.replace_with("\n")

    fields: dict[str, str] = {}
    for line in block.get_text().splitlines():
        if "Version" not in line:
            continue
        key, sep, value = line.partition(":")
        if sep:
            fields[key.strip()] = value.strip()

    return DeviceMetadata(
        hw_version=fields.get(_HARDWARE_KEY) or None,
        sw_version=fields.get(_FIRMWARE_KEY) or None,
    )


class HttpMetadataFetcher:
    """Scrapes device metadata from the sensor's HTML status page.

    Args:
        client: Shared async HTTP client.
        timeout_s: Per-request timeout in seconds.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout_s: float = METADATA_TIMEOUT_S,
    ) -> None:
        self._client = client
        self._timeout_s = timeout_s

    async def fetch(self, host: str) -> DeviceMetadata:
        """Return metadata for *host*, or empty metadata on any failure."""
        url = f"http://{host}"
        try:
            response = await self._client.get(url, timeout=self._timeout_s)
            response.raise_for_status()
            return parse_device_metadata(response.text)
        except Exception as exc:
            logger.debug("Device metadata unavailable for %s: %s", url, exc)
            return DeviceMetadata()
