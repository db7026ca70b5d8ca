"""Outbound fetches through the proxy chain and the hop server."""

from .buffer import BufferedDownloader, BufferedFile
from .chain import chain_url
from .fetcher import ProxyFetcher, ResponseBody

__all__ = [
    "BufferedDownloader",
    "BufferedFile",
    "ProxyFetcher",
    "ResponseBody",
    "chain_url",
]
