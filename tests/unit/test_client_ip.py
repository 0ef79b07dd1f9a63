"""Tests for client IP resolution."""

from __future__ import annotations

from starlette.datastructures import Headers

from src.security.client_ip import get_client_ip


def test_first_forwarded_hop_wins() -> None:
    headers = Headers({"X-Forwarded-For": " 203.0.113.7 , 10.0.0.1", "X-Real-IP": "10.0.0.2"})
    assert get_client_ip(headers) == "203.0.113.7"


def test_falls_back_to_real_ip() -> None:
    assert get_client_ip(Headers({"x-real-ip": "198.51.100.4"})) == "198.51.100.4"


def test_falls_back_to_remote_addr() -> None:
    assert get_client_ip({"remote-addr": "198.51.100.5"}) == "198.51.100.5"


def test_empty_forwarded_header_is_ignored() -> None:
    assert get_client_ip({"x-forwarded-for": "", "x-real-ip": "198.51.100.4"}) == "198.51.100.4"


def test_defaults_to_loopback() -> None:
    assert get_client_ip({}) == "127.0.0.1"
    assert get_client_ip({}, default="0.0.0.0") == "0.0.0.0"
