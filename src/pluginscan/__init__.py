"""WordPress plugin scanner: registry/allowlist reconciliation, hidden plugin
discovery, and checksum verification."""

__version__ = "1.0.0"
