"""Blocking services that run on worker threads."""

from paperboy.services.feed_discovery import DiscoveryReport, FeedDiscoveryService, normalize_query
from paperboy.services.remote_bytes import FaviconLoader, RemoteBytesFetcher
from paperboy.services.zip_lookup import StaticZipLookup, ZipLookup
