"""Address helpers for cosigner endpoints."""

from __future__ import annotations

import json
from dataclasses import dataclass

_ALLOWED_HOST_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    "-._~!$&'()*+,;=:[]<>\"%"
)


class AddressError(ValueError):
    """Raised when an address cannot be parsed."""


def go_quote(text: str) -> str:
    """Quote a string the way error messages in the config format do."""
    return json.dumps(text, ensure_ascii=False)


@dataclass(frozen=True)
class ParsedURL:
    scheme: str
    host: str
    path: str


def _fail(raw: str, message: str) -> AddressError:
    return AddressError(f"parse {go_quote(raw)}: {message}")


def _split_scheme(raw: str, text: str) -> tuple[str, str]:
    for index, char in enumerate(text):
        if char.isascii() and char.isalpha():
            continue
        if char.isdigit() or char in "+-.":
            if index == 0:
                return "", text
            continue
        if char == ":":
            if index == 0:
                raise _fail(raw, "missing protocol scheme")
            return text[:index], text[index + 1:]
        return "", text
    return "", text


def parse_url(raw: str) -> ParsedURL:
    """Parse a URL into scheme, host and path, rejecting malformed hosts."""
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in raw):
        raise _fail(raw, "net/url: invalid control character in URL")
    text = raw.split("#", 1)[0]
    scheme, rest = _split_scheme(raw, text)
    rest = rest.split("?", 1)[0]
    if scheme and not rest.startswith("/"):
        return ParsedURL(scheme.lower(), "", "")
    if not scheme:
        first = rest.split("/", 1)[0]
        if ":" in first and not rest.startswith("/"):
            raise _fail(raw, "first path segment in URL cannot contain colon")
    host = ""
    path = rest
    if rest.startswith("//"):
        authority, sep, tail = rest[2:].partition("/")
        path = sep + tail
        host = authority.rpartition("@")[2]
        for char in host:
            if char.isascii() and char not in _ALLOWED_HOST_CHARS:
                raise _fail(raw, f"invalid character {go_quote(char)} in host name")
    return ParsedURL(scheme.lower(), host, path)


def split_host_port(hostport: str) -> tuple[str, str]:
    """Split "host:port" or "[host]:port" into its parts."""
    def err(reason: str) -> AddressError:
        return AddressError(f"address {hostport}: {reason}")

    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise err("missing ']' in address")
        host, tail = hostport[1:end], hostport[end + 1:]
        if not tail.startswith(":"):
            raise err("missing port in address")
        return host, tail[1:]
    if ":" not in hostport:
        raise err("missing port in address")
    host, _, port = hostport.rpartition(":")
    if ":" in host:
        raise err("too many colons in address")
    return host, port


def sanitize_address(address: str) -> str:
    """Return the host:port part of an address URL."""
    try:
        return parse_url(address).host
    except AddressError as exc:
        raise AddressError(f"error parsing URL: {exc}") from exc


def multi_address(addresses: list[str]) -> str:
    """Combine several addresses into one multi-target address."""
    hosts = [sanitize_address(a) for a in addresses]
    return "multi:///" + ",".join(hosts)