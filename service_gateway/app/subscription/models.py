"""
Proxy entry models for the subscription transcoder.
"""

from dataclasses import dataclass
from typing import ClassVar, Union


@dataclass(frozen=True)
class ShadowsocksEntry:
    """A parsed ``ss://`` entry."""

    scheme: ClassVar[str] = "ss"

    label: str
    host: str
    port: int
    encrypt_method: str
    password: str

    def to_config_line(self) -> str:
        return (
            f"{self.label} = ss, {self.host}, {self.port}, "
            f"encrypt-method={self.encrypt_method}, password={self.password}, udp-relay=true"
        )


@dataclass(frozen=True)
class VmessEntry:
    """A parsed ``vmess://`` entry."""

    scheme: ClassVar[str] = "vmess"

    label: str
    address: str
    port: int
    user_id: str

    def to_config_line(self) -> str:
        return (
            f"{self.label} = vmess, {self.address}, {self.port}, "
            f"username={self.user_id}, skip-cert-verify=true, tls=true"
        )


ProxyURI = Union[ShadowsocksEntry, VmessEntry]
