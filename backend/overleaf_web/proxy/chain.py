"""URL chaining through the ordered list of proxy hops."""

from __future__ import annotations

from typing import Sequence
from urllib.parse import urlencode, urlsplit, urlunsplit


def chain_url(url: str, chain: Sequence[str]) -> str:
    """Wrap ``url`` once per hop; the last hop is the request target.

    Every hop after the first also gets ``next_is_proxy=true`` so it knows the
    ``url`` parameter points at another proxy rather than the original source.
    """
    current = url
    for idx, hop in enumerate(chain):
        params: list[tuple[str, str]] = []
        if idx > 0:
            params.append(("next_is_proxy", "true"))
        params.append(("url", current))
        parts = urlsplit(hop)
        current = urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(params), ""))
    return current


__all__ = ["chain_url"]
