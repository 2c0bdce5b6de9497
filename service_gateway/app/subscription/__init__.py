"""
Subscription transcoding package.

Converts a backend's base64 subscription blob (one proxy URI per line) into
flat proxy configuration lines.

Modules of interest:
- models: One dataclass per supported URI scheme, each rendering its own line.
- transcoder: Blob decoding and the per-scheme two-stage parsers.

Malformed or unsupported entries are dropped individually; transcoding a
blob never fails as a whole.
"""

from .models import ProxyURI, ShadowsocksEntry, VmessEntry
from .transcoder import SubscriptionTranscoder, transcode

__all__ = [
    "ProxyURI",
    "ShadowsocksEntry",
    "SubscriptionTranscoder",
    "VmessEntry",
    "transcode",
]
