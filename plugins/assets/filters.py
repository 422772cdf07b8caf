"""
Filters run over the assets of a bucket during an export pass.

A filter goes through one pass per bucket:

- ``pre(bucket)`` decides whether the filter applies to the bucket's kind and,
  if so, returns a fresh FilterContext for the pass;
- ``process(context, asset)`` is called for each accepted member, in export order;
- ``post(context)`` builds (or reuses) the output and substitutes it for the
  matched members.

``Collect`` and its ``Concat`` flavour combine every matched asset into one
output; ``Minifier`` produces one minified output per matched asset.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import csscompressor
import jsmin
from packaging import version

from plugins.assets.asset import Asset, new_digester
from plugins.assets.cache import BuildSkipCache
from plugins.assets.errors import ConfigurationError, FilterContractViolation, UnknownKindError
from plugins.assets.kind import Kind, parse_type

if TYPE_CHECKING:
    from plugins.assets.bucket import Bucket
    from plugins.assets.registry import Registry

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# Minifier dispatch table, keyed by asset extension.
MINIFIERS: Dict[str, Callable] = {
    "js": jsmin.jsmin,
    "css": csscompressor.compress,
}

# Compatibility: csscompressor<=0.9.5. Preserve whitespace in url() to avoid breaking SVG data URIs.
if version.parse(csscompressor.__version__) <= version.parse("0.9.5"):
    # See https://github.com/sprymix/csscompressor/issues/9#issuecomment-1024417374
    _preserve_call_tokens_original = csscompressor._preserve_call_tokens
    _url_re = csscompressor._url_re

    def _preserve_call_tokens(*args, **kwargs):
        """If regex is for url pattern, switch the keyword remove_ws to False."""
        if _url_re == args[1]:
            kwargs["remove_ws"] = False
        return _preserve_call_tokens_original(*args, **kwargs)

    csscompressor._preserve_call_tokens = _preserve_call_tokens


def minify(content: str, extension: str) -> str:
    """Run the minifier for ``extension`` with safe parameters."""
    try:
        minify_func = MINIFIERS[extension]
    except KeyError:
        raise UnknownKindError(f"No minifier for '{extension}' assets") from None
    if minify_func is jsmin.jsmin:
        return minify_func(content, quote_chars="'\"`")
    return minify_func(content)


@dataclass
class FilterContext:
    """Scratch state of one filter over one bucket; built fresh for every pass."""

    filter: "Filter"
    bucket: "Bucket"
    settings: Dict[str, Any]
    matched: List[Asset] = field(default_factory=list)
    digester: Any = field(default_factory=new_digester)
    content_digester: Any = None
    output: Optional[Asset] = None

    @property
    def kind(self) -> Kind:
        return self.bucket.kind

    @property
    def signature(self) -> str:
        return self.filter.signature

    @property
    def registry(self) -> "Registry":
        return self.bucket.registry

    @property
    def digest(self) -> str:
        """Digest of the filter configuration and the keys and contents of the matched assets."""
        return self.digester.hexdigest()

    @property
    def content_digest(self) -> str:
        """Digest of the matched contents alone, in order."""
        if self.content_digester is not None:
            return self.content_digester.hexdigest()
        digester = new_digester()
        for asset in self.matched:
            digester.update(f"{asset.content_digest}\n".encode("utf8"))
        return digester.hexdigest()

    @property
    def mtime(self) -> float:
        return max((asset.mtime for asset in self.matched), default=0)


class Filter:
    """Base filter: matches every visible asset of its type and does nothing with them."""

    signature = "filter"
    defaults: Dict[str, Any] = {}
    # Output path template used when neither the settings nor the scheme give one.
    default_output: Optional[str] = None

    def __init__(self, type=None, **settings):
        self.type = parse_type(type)
        if type is not None and self.type is None:
            raise UnknownKindError(f"Don't know type ({type}) for filter '{self.signature}'")
        self.settings: Dict[str, Any] = {**self.defaults, **settings}

    def fit(self, kind: Kind) -> bool:
        return self.type is None or self.type.same_as(kind.type)

    def accepts(self, asset: Asset) -> bool:
        return not asset.hidden and (self.type is None or self.type.same_as(asset.type))

    def filter(self, bucket: "Bucket") -> None:
        """Run one full pass over ``bucket``."""
        context = self.pre(bucket)
        if context is None:
            return
        for asset in bucket.members():
            if self.accepts(asset):
                self.process(context, asset)
        self.post(context)

    def pre(self, bucket: "Bucket") -> Optional[FilterContext]:
        if not self.fit(bucket.kind):
            return None
        context = FilterContext(self, bucket, dict(self.settings))
        context.digester.update(f"{self.signature}\n".encode("utf8"))
        context.digester.update(json.dumps(context.settings, sort_keys=True, default=str).encode("utf8"))
        return context

    def process(self, context: FilterContext, asset: Asset) -> None:
        context.matched.append(asset)
        context.digester.update(f"\n{asset.key}\n{asset.content_digest}".encode("utf8"))

    def post(self, context: FilterContext) -> None:
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.signature} type={self.type}>"


class Collect(Filter):
    """Combine every matched asset into a single output asset.

    Settings:
    - skip_single (bool): leave a lone matched asset alone.
    - skip_if_exists (bool): reuse a non-empty output without consulting the cache.
    - check_content (bool): skip when identical content was already built (implies content_digest).
    - content_digest (bool): keep a running digest of the matched contents.
    - check_age (bool): rebuild when a source is newer than the last build.
    - check_digest (bool): rebuild when the set of inputs was never built before.
    - minify (bool): run the combined content through the minifier for its type.
    - output (str): output path template, overriding the registry's scheme.
    """

    signature = "collect"
    defaults: Dict[str, Any] = {
        "skip_single": False,
        "skip_if_exists": False,
        "check_content": False,
        "content_digest": False,
        "check_age": True,
        "check_digest": True,
        "minify": False,
    }

    def __init__(self, type=None, **settings):
        super().__init__(type, **settings)
        if self.settings["check_content"]:
            self.settings["content_digest"] = True
        if "{content_digest" in (self.settings.get("output") or ""):
            self.settings["content_digest"] = True

    def pre(self, bucket: "Bucket") -> Optional[FilterContext]:
        context = super().pre(bucket)
        if context is not None and context.settings["content_digest"]:
            context.content_digester = new_digester()
        return context

    def process(self, context: FilterContext, asset: Asset) -> None:
        super().process(context, asset)
        if context.content_digester is not None:
            context.content_digester.update(f"{asset.content_digest}\n".encode("utf8"))

    def post(self, context: FilterContext) -> None:
        matched = context.matched
        if not matched:
            return
        if context.settings["skip_single"] and len(matched) == 1:
            return

        output = context.registry.output_asset(context)
        context.output = output
        if any(asset.key == output.key for asset in matched):
            raise ConfigurationError(f"Output of '{self.signature}' for {context.kind} would overwrite its input {output.key}")

        cache = BuildSkipCache.for_filter(context.registry.cache_dir, self)
        if context.settings["skip_if_exists"] and output.size > 0:
            logger.debug("[assets] skip %s: already exists", output.key)
        elif cache.should_build(context, output):
            self.build(context, output)
        cache.touch(context)

        context.bucket.substitute(matched, output)

    def build(self, context: FilterContext, output: Asset) -> None:
        content = self.build_content(context)
        if content is None:
            raise FilterContractViolation(f"Filter '{self.signature}' produced no content for {output.key}")
        output.write(content)
        if output.size == 0 and content:
            raise FilterContractViolation(f"Filter '{self.signature}' did not produce {output.file}")

    def build_content(self, context: FilterContext) -> Optional[str]:
        parts = []
        for asset in context.matched:
            content = asset.content
            parts.append(content if content.endswith("\n") else content + "\n")
        content = "".join(parts)
        if context.settings["minify"]:
            content = minify(content, context.kind.type.extension)
        return content


class Concat(Collect):
    """Concatenate matched assets in export order."""

    signature = "concat"


class Minifier(Filter):
    """Minify each matched stylesheet or script into its own ``.min`` sibling.

    Settings:
    - check_age (bool): rewrite an existing output only when its source is newer.
    - output (str): output path template; ``{dir}`` and ``{stem}`` name the source.
    """

    signature = "minify"
    defaults: Dict[str, Any] = {"check_age": True}
    default_output = "{dir}/{stem}.min.{ext}"

    def fit(self, kind: Kind) -> bool:
        return super().fit(kind) and kind.type.extension in MINIFIERS

    def accepts(self, asset: Asset) -> bool:
        return super().accepts(asset) and asset.external and asset.type.extension in MINIFIERS

    def post(self, context: FilterContext) -> None:
        for asset in context.matched:
            source = PurePosixPath(asset.path)
            parent = source.parent.as_posix()
            output = context.registry.output_asset(
                context,
                dir="" if parent == "." else parent.rstrip("/"),
                stem=source.stem,
                digest=asset.digest,
                content_digest=asset.content_digest,
            )
            if output.key == asset.key:
                raise ConfigurationError(f"Minified output for {asset.key} would overwrite its source")

            stale = context.settings["check_age"] and asset.mtime > output.mtime
            if not output.file.exists() or stale:
                output.write(minify(asset.content, asset.type.extension))
            if output.file is None or not output.file.exists():
                raise FilterContractViolation(f"Filter '{self.signature}' did not produce {output.key}")

            context.bucket.substitute([asset], output)
