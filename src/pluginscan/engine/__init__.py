"""Audit engines: fetcher, classifier, discovery, checksum and allowlist."""
from pluginscan.engine.allowlist import add_entry, render_allowlist
from pluginscan.engine.checksum import ChecksumVerifier, md5_file
from pluginscan.engine.classifier import RegistryClassifier
from pluginscan.engine.discovery import FilesystemDiscovery
from pluginscan.engine.fetcher import ManifestFetcher

__all__ = [
    "add_entry",
    "render_allowlist",
    "ChecksumVerifier",
    "md5_file",
    "RegistryClassifier",
    "FilesystemDiscovery",
    "ManifestFetcher",
]
