"""
Subscription blob transcoder.

A subscription blob is base64 text that decodes to one proxy URI per line.
Each URI carries its connection details base64-encoded in the host part and
its display label in the fragment:

    ss://<base64("method:password@host:port")>#label
    vmess://<base64('{"ps": ..., "add": ..., "port": ..., "id": ...}')>

Both schemes are parsed in two stages: the outer URI first, then the decoded
payload. A stage returns None when its input does not fit, which drops only
that entry.
"""

import base64
import binascii
import json
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import SplitResult, unquote, urlsplit

from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .models import ProxyURI, ShadowsocksEntry, VmessEntry

_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


def decode_base64_text(data: str) -> Optional[str]:
    """Decode standard or URL-safe base64, tolerating whitespace and missing padding."""
    compact = "".join(data.split()).translate(_URLSAFE_TO_STANDARD)
    compact += "=" * (-len(compact) % 4)
    try:
        return base64.b64decode(compact, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return None


def _parse_port(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        port = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        port = int(value.strip())
    else:
        return None
    return port if 0 < port < 65536 else None


def _host_payload(uri: SplitResult) -> str:
    # Base64 may contain "/", which ends the netloc and spills into the path.
    return (uri.netloc + uri.path).rstrip("/")


def _host_as_written(uri: SplitResult) -> str:
    # SplitResult.hostname lowercases and drops IPv6 brackets.
    host_port = uri.netloc.rpartition("@")[2]
    return host_port.rpartition(":")[0]


def parse_shadowsocks(uri: SplitResult) -> Optional[ShadowsocksEntry]:
    """Parse an ``ss`` URI whose host is base64 of ``method:password@host:port``."""
    payload = decode_base64_text(_host_payload(uri))
    if not payload:
        return None

    try:
        nested = urlsplit(f"ss://{payload}")
        port = nested.port
    except ValueError:
        return None

    if not nested.username or nested.password is None or not nested.hostname or port is None:
        return None

    return ShadowsocksEntry(
        label=unquote(uri.fragment),
        host=_host_as_written(nested),
        port=port,
        encrypt_method=nested.username,
        password=nested.password,
    )


def parse_vmess(uri: SplitResult) -> Optional[VmessEntry]:
    """Parse a ``vmess`` URI whose host is base64 of a JSON connection object."""
    payload = decode_base64_text(_host_payload(uri))
    if not payload:
        return None

    try:
        document = json.loads(payload)
    except ValueError:
        return None
    if not isinstance(document, dict):
        return None

    address = document.get("add")
    user_id = document.get("id")
    port = _parse_port(document.get("port"))
    if not isinstance(address, str) or not address or port is None:
        return None
    if not isinstance(user_id, str) or not user_id:
        return None

    label = document.get("ps")
    return VmessEntry(
        label=label if isinstance(label, str) else "",
        address=address,
        port=port,
        user_id=user_id,
    )


PARSERS: Dict[str, Callable[[SplitResult], Optional[ProxyURI]]] = {
    "ss": parse_shadowsocks,
    "vmess": parse_vmess,
}


class SubscriptionTranscoder:
    """Turns a subscription blob into proxy configuration lines."""

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.metrics = metrics
        self.logger = get_logger("gateway.subscription")

    def transcode(self, raw_body: str) -> List[str]:
        """Return one config line per recognised entry, in input order.

        Never raises: an undecodable blob yields an empty list and bad
        entries are skipped.
        """
        return [entry.to_config_line() for entry in self.parse(raw_body)]

    def parse(self, raw_body: str) -> List[ProxyURI]:
        text = decode_base64_text(raw_body or "")
        if text is None:
            self.logger.info("Subscription body is not base64; returning no entries")
            return []

        entries: List[ProxyURI] = []
        for line in text.split("\n"):
            candidate = line.strip()
            if not candidate:
                continue
            entry = self._parse_line(candidate)
            if entry is not None:
                entries.append(entry)
                if self.metrics is not None:
                    self.metrics.record_subscription_entry(entry.scheme)
        return entries

    def _parse_line(self, candidate: str) -> Optional[ProxyURI]:
        try:
            uri = urlsplit(candidate)
        except ValueError:
            self._skipped("malformed", None)
            return None

        parser = PARSERS.get(uri.scheme)
        if parser is None:
            self._skipped("unsupported_scheme", uri.scheme)
            return None

        entry = parser(uri)
        if entry is None:
            self._skipped("malformed", uri.scheme)
        return entry

    def _skipped(self, reason: str, scheme: Optional[str]) -> None:
        # Entries carry credentials, so only the scheme is logged.
        self.logger.debug("Skipping subscription entry", reason=reason, scheme=scheme)
        if self.metrics is not None:
            self.metrics.record_subscription_skip(reason)


def transcode(raw_body: str) -> List[str]:
    """Transcode a subscription blob without metrics."""
    return SubscriptionTranscoder().transcode(raw_body)
