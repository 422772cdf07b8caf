"""
Asset descriptors: one included file or piece of inline content.
"""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from plugins.assets.errors import SourceMissingError, UnknownKindError
from plugins.assets.kind import ContentType, parse_type

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")


def new_digester():
    """Return the hash object used for every asset and filter digest."""
    return hashlib.sha256()


@dataclass(frozen=True)
class Base:
    """Where asset paths live on disk (``dir``) and how they are addressed (``uri``)."""

    dir: Path
    uri: str = "/"

    def file(self, path: str) -> Path:
        return Path(self.dir) / path.lstrip("/")

    def url(self, path: str) -> str:
        return self.uri.rstrip("/") + "/" + path.lstrip("/")


class Asset:
    """A stylesheet, script or other resource, either backed by a file or inline.

    File-backed assets are keyed by their path; inline assets by a marker
    derived from their content digest. The content and digest of a file-backed
    asset are read lazily and re-read only when the file changes on disk.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        *,
        base: Optional[Base] = None,
        content: Optional[str] = None,
        type: Union[str, ContentType, None] = None,
        rank: Union[int, float] = 0,
        inline: Optional[bool] = None,
        attributes: Optional[Dict[str, Any]] = None,
    ):
        content_type = parse_type(type)
        if type is not None and content_type is None:
            raise UnknownKindError(f"Don't understand type ({type}) for this asset")

        if path and base is not None:
            self.path: Optional[str] = path
            self.base: Optional[Base] = base
            content_type = content_type or parse_type(path)
            if content_type is None:
                raise UnknownKindError(f"Don't know type for asset ({path})")
            self.inline = False if inline is None else bool(inline)
        elif content is not None:
            if content_type is None:
                raise UnknownKindError("Don't have a type for this inline asset")
            self.path = None
            self.base = None
            self.inline = True
        else:
            raise ValueError("An asset needs either a path and a base, or content")

        self.type: ContentType = content_type
        self.rank = self._parse_rank(rank)
        self.attributes: Dict[str, Any] = dict(attributes or {})
        self.hidden = False
        self.sequence = 0

        self._content: Optional[str] = content
        self._content_state: Optional[Tuple[int, int]] = None
        self._digest: Optional[str] = None
        self._digest_state: Optional[Tuple[int, int]] = None

    @staticmethod
    def _parse_rank(rank) -> Union[int, float]:
        if rank is None:
            return 0
        if isinstance(rank, bool):
            raise ValueError(f"Don't understand rank ({rank!r})")
        if isinstance(rank, (int, float)):
            return rank
        try:
            value = float(rank)
        except (TypeError, ValueError):
            raise ValueError(f"Don't understand rank ({rank!r})") from None
        return int(value) if value.is_integer() else value

    # -------------------------------
    # Location
    # -------------------------------

    @property
    def external(self) -> bool:
        return not self.inline

    @property
    def file(self) -> Optional[Path]:
        if self.path is None:
            return None
        return self.base.file(self.path)

    @property
    def uri(self) -> Optional[str]:
        if self.path is None:
            return None
        return self.base.url(self.path)

    @property
    def key(self) -> str:
        if self.path is not None:
            return self.path
        return "%" + self.digest

    def _state(self) -> Optional[Tuple[int, int]]:
        """(mtime_ns, size) of the backing file, or None when there is no file on disk."""
        file = self.file
        if file is None:
            return None
        try:
            stat = file.stat()
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size

    @property
    def mtime(self) -> float:
        file = self.file
        if file is None or not file.exists():
            return 0
        return file.stat().st_mtime

    @property
    def size(self) -> int:
        state = self._state()
        return state[1] if state else 0

    # -------------------------------
    # Content
    # -------------------------------

    @property
    def content(self) -> str:
        if self.file is None:
            return self._content
        state = self._state()
        if state is None:
            raise SourceMissingError(f"Trying to get content from non-existent file ({self.file})")
        if self._content is None or state != self._content_state:
            self._content = self.file.read_text(encoding="utf8")
            self._content_state = state
        return self._content

    @property
    def digest(self) -> str:
        content = self.content
        state = self._state()
        if self._digest is None or state != self._digest_state:
            digester = new_digester()
            digester.update(content.encode("utf8"))
            self._digest = digester.hexdigest()
            self._digest_state = state
        return self._digest

    @property
    def content_digest(self) -> str:
        return self.digest

    def write(self, content: str) -> None:
        """Write ``content`` to the asset's file, creating parent directories as needed."""
        file = self.file
        if file is None:
            raise ValueError("Can't write an inline asset")
        file.parent.mkdir(parents=True, exist_ok=True)
        file.write_text(content, encoding="utf8")
        logger.debug("[assets] wrote %s (%d bytes)", file.as_posix(), len(content))

    # -------------------------------
    # Visibility
    # -------------------------------

    def hide(self) -> None:
        self.hidden = True

    def reveal(self) -> None:
        self.hidden = False

    def __repr__(self) -> str:
        where = self.path if self.path is not None else "<inline>"
        return f"<Asset {where} type={self.type.mime} rank={self.rank}{' hidden' if self.hidden else ''}>"
