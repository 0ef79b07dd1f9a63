"""Client address resolution from proxy headers."""

from __future__ import annotations

from collections.abc import Mapping

DEFAULT_CLIENT_IP = "127.0.0.1"


def get_client_ip(headers: Mapping[str, str], default: str = DEFAULT_CLIENT_IP) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then Remote-Addr, then ``default``.

    ``headers`` must be case-insensitive or already lower-cased (Starlette
    headers are both).
    """
    forwarded_for = headers.get("x-forwarded-for", "")
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop
    return headers.get("x-real-ip") or headers.get("remote-addr") or default
