"""Outbound HTTP retrieval for user-supplied catalog URLs.

The URL policy is a static check of the hostname literal. It does not resolve
DNS, so a public hostname that resolves to a private address at request time
(DNS rebinding) is not caught here.
"""

import ipaddress
import json
import logging
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from dockyard.config import config
from dockyard.errors import CatalogParseError, NetworkError, SizeLimitExceeded, UnsafeUrl

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = {"http", "https"}
LOOPBACK_HOSTNAMES = {"localhost", "localhost.localdomain", "ip6-localhost", "ip6-loopback"}
BLOCKED_NETWORKS = [
    ipaddress.ip_network("0.0.0.0/32"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("::1/128"),
]
CHUNK_SIZE = 64 * 1024


def validate_url(url: str) -> None:
    """Raise ``UnsafeUrl`` unless ``url`` passes the outbound request policy."""
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError as exc:
        raise UnsafeUrl(url, f"unparseable URL ({exc})") from exc

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise UnsafeUrl(url, f"scheme '{parsed.scheme}' is not allowed")
    if not hostname:
        raise UnsafeUrl(url, "missing hostname")

    hostname = hostname.rstrip(".").lower()
    if hostname in LOOPBACK_HOSTNAMES:
        raise UnsafeUrl(url, "loopback hostname")

    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return

    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        address = address.ipv4_mapped
    for network in BLOCKED_NETWORKS:
        if address.version == network.version and address in network:
            raise UnsafeUrl(url, f"address {address} is in blocked range {network}")


def is_safe_url(url: str) -> bool:
    try:
        validate_url(url)
    except UnsafeUrl:
        return False
    return True


class SafeFetcher:
    def __init__(
        self,
        timeout_seconds: Optional[int] = None,
        max_bytes: Optional[int] = None,
    ):
        self.timeout_seconds = timeout_seconds or config.fetch_timeout_seconds
        self.max_bytes = max_bytes or config.fetch_max_bytes

    def validate(self, url: str) -> None:
        validate_url(url)

    def fetch(self, url: str, max_bytes: Optional[int] = None, accept: str = "*/*") -> bytes:
        limit = max_bytes or self.max_bytes
        self.validate(url)

        request = Request(url, headers={"Accept": accept, "User-Agent": "dockyard"})
        logger.info("Fetching %s", url)
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response:
                declared = _content_length(response)
                if declared is not None and declared > limit:
                    raise SizeLimitExceeded(
                        f"Response from {url} declares {declared} bytes, limit is {limit}",
                        limit,
                    )
                return self._read_bounded(response, url, limit)
        except HTTPError as exc:
            raise NetworkError(f"Failed to fetch {url}: HTTP {exc.code} {exc.reason}") from exc
        except URLError as exc:
            raise NetworkError(f"Failed to fetch {url}: {exc.reason}") from exc
        except (TimeoutError, OSError) as exc:
            raise NetworkError(f"Failed to fetch {url}: {exc}") from exc

    def fetch_json(self, url: str, max_bytes: Optional[int] = None) -> Any:
        payload = self.fetch(url, max_bytes=max_bytes, accept="application/json")
        try:
            return json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CatalogParseError(f"Invalid JSON from {url}: {exc}") from exc

    def _read_bounded(self, response, url: str, limit: int) -> bytes:
        chunks = []
        total = 0
        while True:
            chunk = response.read(CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > limit:
                raise SizeLimitExceeded(
                    f"Response from {url} exceeded the {limit} byte limit",
                    limit,
                )
            chunks.append(chunk)
        return b"".join(chunks)


def _content_length(response) -> Optional[int]:
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    value = headers.get("Content-Length")
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
