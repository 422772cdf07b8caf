"""
Marker files that let a filter skip rebuilding an output that is already current.

Each filter keeps its markers under ``<root>/<signature>/``:

- ``check-digest/<digest>``: the exact input combination (keys and content
  digests of the matched assets plus the filter settings) was built.
- ``check-content-digest/<content digest>``: the same content was built,
  whatever the file names were.

A marker carries no data; its existence and mtime are all that is read.
"""

import logging
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

DIGEST_DIR = "check-digest"
CONTENT_DIGEST_DIR = "check-content-digest"


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except FileNotFoundError:
        return 0


class BuildSkipCache:
    """Decides whether a filter needs to rebuild its output, and records that it did.

    The checks are applied in this order, first decisive answer wins:

    1. A missing or empty output is always rebuilt.
    2. ``check_content``: rebuild iff the content marker is absent.
    3. ``check_age``: rebuild if a matched source is newer than the digest marker.
    4. ``check_digest``: rebuild iff the digest marker is absent.

    With every check disabled, an existing output is never rebuilt.
    """

    def __init__(self, root: Path, check_age: bool = True, check_digest: bool = True, check_content: bool = False):
        self.root = Path(root)
        self.check_age = check_age
        self.check_digest = check_digest
        self.check_content = check_content

    @classmethod
    def for_filter(cls, root: Path, filter: Any) -> "BuildSkipCache":
        settings: Mapping[str, Any] = filter.settings
        return cls(
            Path(root) / filter.signature,
            check_age=bool(settings.get("check_age", True)),
            check_digest=bool(settings.get("check_digest", True)),
            check_content=bool(settings.get("check_content", False)),
        )

    def digest_marker(self, digest: str) -> Path:
        return self.root / DIGEST_DIR / digest

    def content_marker(self, content_digest: str) -> Path:
        return self.root / CONTENT_DIGEST_DIR / content_digest

    def should_build(self, context, output) -> bool:
        if output.size == 0:
            logger.debug("[assets] build %s: output missing", output.key)
            return True

        if self.check_content:
            built = self.content_marker(context.content_digest).exists()
            logger.debug("[assets] build %s: content marker %s", output.key, "present" if built else "absent")
            return not built

        marker = self.digest_marker(context.digest)
        if self.check_age and context.mtime > _mtime(marker):
            logger.debug("[assets] build %s: sources newer than last build", output.key)
            return True

        if self.check_digest and not marker.exists():
            logger.debug("[assets] build %s: new input digest %s", output.key, context.digest[:12])
            return True

        logger.debug("[assets] skip %s: up to date", output.key)
        return False

    def touch(self, context) -> None:
        """Refresh the markers for this pass, whether or not anything was rebuilt."""
        markers = []
        if self.check_age or self.check_digest:
            markers.append(self.digest_marker(context.digest))
        if self.check_content:
            markers.append(self.content_marker(context.content_digest))
        for marker in markers:
            marker.parent.mkdir(parents=True, exist_ok=True)
            marker.touch()
