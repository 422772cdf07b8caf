"""
Content types and the processing kinds assets are bucketed by.
"""

import mimetypes
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, Optional

from plugins.assets.errors import UnknownKindError


class Category(Enum):
    STYLESHEET = "css"
    SCRIPT = "js"
    OTHER = "other"


CSS_MIME = "text/css"
JS_MIME = "application/javascript"

# Short names accepted anywhere a content type is expected.
ALIASES: Dict[str, str] = {
    "css": CSS_MIME,
    "js": JS_MIME,
    "javascript": JS_MIME,
}

# Different mimetypes tables report JavaScript under different names.
JS_MIMES = (JS_MIME, "text/javascript", "application/x-javascript")

MIME_RE = re.compile(r"^(application|audio|font|image|message|model|multipart|text|video)/[\w.+-]+$")

# W3C says to assume screen when no media is given, so do the same.
DEFAULT_MEDIA = "screen"


@dataclass(frozen=True)
class ContentType:
    """A MIME type, classified into one of the closed set of categories."""

    mime: str

    @property
    def category(self) -> Category:
        if self.mime == CSS_MIME:
            return Category.STYLESHEET
        if self.mime in JS_MIMES:
            return Category.SCRIPT
        return Category.OTHER

    @property
    def extension(self) -> str:
        if self.category is Category.STYLESHEET:
            return "css"
        if self.category is Category.SCRIPT:
            return "js"
        guessed = mimetypes.guess_extension(self.mime)
        if guessed:
            return guessed.lstrip(".")
        return self.mime.rsplit("/", 1)[-1]

    def same_as(self, other: "ContentType") -> bool:
        if self.category is not other.category:
            return False
        return self.category is not Category.OTHER or self.mime == other.mime

    def __str__(self) -> str:
        return self.mime


def parse_type(value) -> Optional[ContentType]:
    """Turn an alias, MIME string or file path into a ContentType.

    Returns None when the value does not identify a type.
    """
    if value is None:
        return None
    if isinstance(value, ContentType):
        return value

    text = str(value).strip().lower()
    if not text:
        return None
    if text in ALIASES:
        return ContentType(ALIASES[text])

    suffix = PurePosixPath(text).suffix
    if suffix:
        alias = ALIASES.get(suffix[1:])
        if alias:
            return ContentType(alias)
        guessed, _ = mimetypes.guess_type(f"file{suffix}")
        if guessed:
            return ContentType(ALIASES["js"] if guessed in JS_MIMES else guessed)

    if MIME_RE.match(text):
        return ContentType(JS_MIME if text in JS_MIMES else text)
    return None


@dataclass(frozen=True)
class Kind:
    """A processing category: a content type plus an optional variant (the media for stylesheets)."""

    type: ContentType
    variant: Optional[str] = None

    @classmethod
    def for_type(cls, content_type: ContentType, media: Optional[str] = None) -> "Kind":
        if content_type.category is Category.STYLESHEET:
            return cls(content_type, media or DEFAULT_MEDIA)
        return cls(content_type)

    @classmethod
    def parse(cls, name: str) -> "Kind":
        """Build a Kind back from its name, e.g. ``css-print`` or ``js``."""
        base, _, variant = name.strip().partition("-")
        content_type = parse_type(base)
        if content_type is None:
            raise UnknownKindError(f"Don't know the kind '{name}'")
        return cls(content_type, variant or None)

    @property
    def name(self) -> str:
        extension = self.type.extension
        return f"{extension}-{self.variant}" if self.variant else extension

    @property
    def specificity(self) -> int:
        return 1 if self.variant else 0

    def is_better_than(self, other: Optional["Kind"]) -> bool:
        return other is None or self.specificity > other.specificity

    def __str__(self) -> str:
        return self.name
