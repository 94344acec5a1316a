"""
Checksum Verifier -- compare a plugin's files on disk against a manifest of
expected MD5 digests.

The manifest is the only source of truth: files on disk that it does not
mention are ignored.
"""
from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Callable, Mapping

import structlog

from pluginscan.domain.entities import ChecksumDiscrepancy, DiscrepancyReason

CHUNK_SIZE = 8192


def md5_file(path: Path) -> str:
    """MD5 hex digest of a single file.

    Raises:
        OSError: The file cannot be opened or read.
    """
    digest = hashlib.md5(usedforsecurity=False)
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ChecksumVerifier:
    """Per-file integrity check of a plugin directory."""

    def __init__(self, hasher: Callable[[Path], str] = md5_file) -> None:
        self._hasher = hasher
        self.log = structlog.get_logger(self.__class__.__name__)

    def verify(
        self, slug: str, root_dir: Path, manifest: Mapping[str, str],
    ) -> list[ChecksumDiscrepancy]:
        """Return one discrepancy per manifest entry that is missing or differs.

        Order follows the manifest.  An empty list means integrity holds.
        Entries that resolve outside *root_dir* are reported as missing.
        """
        root_dir = Path(root_dir)
        self.log.info("checksum.verify.start", slug=slug, files=len(manifest), root=str(root_dir))

        discrepancies: list[ChecksumDiscrepancy] = []
        resolved_root = root_dir.resolve()
        for rel_path, expected in manifest.items():
            local_path = root_dir / rel_path
            if not local_path.resolve().is_relative_to(resolved_root):
                self.log.warning("checksum.path_outside_root", slug=slug, file=rel_path)
                discrepancies.append(ChecksumDiscrepancy(rel_path, DiscrepancyReason.MISSING))
                continue
            if not local_path.is_file():
                discrepancies.append(ChecksumDiscrepancy(rel_path, DiscrepancyReason.MISSING))
                continue
            try:
                actual = self._hasher(local_path)
            except OSError as exc:
                self.log.warning("checksum.unreadable", slug=slug, file=rel_path, error=str(exc))
                discrepancies.append(ChecksumDiscrepancy(rel_path, DiscrepancyReason.MISSING))
                continue
            if actual.lower() != expected.lower():
                discrepancies.append(ChecksumDiscrepancy(rel_path, DiscrepancyReason.MISMATCH))

        self.log.info("checksum.verify.complete", slug=slug, discrepancies=len(discrepancies))
        return discrepancies


__all__ = ["ChecksumVerifier", "md5_file"]
