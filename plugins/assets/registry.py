"""
The asset registry: what has been included, and how it exports.

Assets are stored in inclusion order, keyed by path (or by a content marker
for inline assets). Every export pass groups the registry into buckets by
kind, runs the filter scheme over each bucket and returns the surviving and
produced assets in rank order.
"""

import itertools
import logging
from html import escape
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from plugins.assets.asset import Asset, Base
from plugins.assets.bucket import Bucket, export_order
from plugins.assets.errors import ConfigurationError, UnknownKindError
from plugins.assets.filters import Filter, FilterContext
from plugins.assets.kind import Category, Kind, parse_type
from plugins.assets.rules import Default, asset_fields, expand_path, parse_scheme, path_fields, resolve

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

DEFAULT_NAME = "assets"
DEFAULT_CACHE_DIR = ".assets-cache"


class Registry:
    """Owns the included assets, the filter scheme and the output rule schemes.

    Args:
        base: A Base, or a directory to use with the root URI.
        name: Available to output path templates as ``{name}``.
        output_path_scheme: Rules resolving an output path per (kind, filter signature).
        output_asset_scheme: Rules resolving output asset attributes (e.g. ``media``).
        filter_scheme: Filters attached to every bucket whose kind they fit.
        cache_dir: Root for build-skip markers; relative to ``base.dir`` unless absolute.
    """

    def __init__(
        self,
        base: Union[Base, str, Path],
        name: str = DEFAULT_NAME,
        output_path_scheme=None,
        output_asset_scheme=None,
        filter_scheme: Optional[Iterable[Filter]] = None,
        cache_dir: Union[str, Path, None] = None,
    ):
        self.base = base if isinstance(base, Base) else Base(Path(base))
        self.name = name or DEFAULT_NAME
        self.output_path_scheme = parse_scheme(output_path_scheme)
        self.output_asset_scheme = parse_scheme(output_asset_scheme)
        self.filters: List[Filter] = list(filter_scheme or [])
        self.cache_dir = Path(self.base.dir) / (cache_dir or DEFAULT_CACHE_DIR)

        self._registry: Dict[str, Asset] = {}
        self._sequence = itertools.count()

    # -------------------------------
    # Inclusion
    # -------------------------------

    def include(self, path: str, rank=0, type=None, **attributes) -> Asset:
        """Include the asset at ``path`` (relative to the base); including a path twice returns the first asset."""
        if not path:
            raise ValueError("Don't have a path to include")
        if self.exists(path):
            return self.fetch(path)
        asset = Asset(path, base=self.base, type=type, rank=rank, attributes=attributes)
        self.store(asset)
        return asset

    def include_content(self, content: str, type, rank=0, **attributes) -> Asset:
        """Include inline content, rendered in place rather than referenced."""
        asset = Asset(content=content, type=type, rank=rank, attributes=attributes)
        if self.exists(asset.key):
            return self.fetch(asset.key)
        self.store(asset)
        return asset

    def store(self, asset: Asset) -> None:
        if asset.key not in self._registry:
            asset.sequence = next(self._sequence)
        self._registry[asset.key] = asset

    def fetch(self, key: str) -> Optional[Asset]:
        return self._registry.get(key)

    def exists(self, key: str) -> bool:
        return key in self._registry

    def hide(self, asset: Asset) -> None:
        asset.hide()

    def empty(self) -> bool:
        return not self._registry

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, key: str) -> bool:
        return self.exists(key)

    # -------------------------------
    # Filter scheme
    # -------------------------------

    def filter(self, filter: Filter) -> Filter:
        self.filters.append(filter)
        return filter

    def filter_clear(self, type=None, filter: Optional[Filter] = None) -> None:
        """Drop filters restricted to ``type``, or the given ``filter``; with no arguments drop them all."""
        if type is None and filter is None:
            self.filters = []
            return
        if type is not None:
            content_type = parse_type(type)
            if content_type is None:
                raise UnknownKindError(f"Don't know type ({type})")
            self.filters = [f for f in self.filters if not (f.type and f.type.same_as(content_type))]
        if filter is not None:
            self.filters = [f for f in self.filters if f is not filter]

    # -------------------------------
    # Export
    # -------------------------------

    def kind(self, asset: Asset) -> Kind:
        return Kind.for_type(asset.type, asset.attributes.get("media"))

    def _selected(self, type=None) -> List[Asset]:
        content_type = parse_type(type)
        if type is not None and content_type is None:
            raise UnknownKindError(f"Don't know type ({type})")
        assets = list(self._registry.values())
        if content_type is None:
            return assets
        return [asset for asset in assets if asset.type.same_as(content_type)]

    def buckets(self, type=None) -> Dict[str, Bucket]:
        """Group the visible assets of ``type`` (or of every type) by kind, attaching fitting filters."""
        buckets: Dict[str, Bucket] = {}
        for asset in self._selected(type):
            if asset.hidden:
                continue
            kind = self.kind(asset)
            bucket = buckets.get(kind.name)
            if bucket is None:
                bucket = buckets[kind.name] = Bucket(kind, self)
                for filter in self.filters:
                    if filter.fit(kind):
                        bucket.add_filter(filter)
            bucket.add_asset(asset)
        return buckets

    def exports(self, type=None) -> List[Asset]:
        """Run one export pass and return the visible assets in rank order."""
        # Hidden marks describe the outcome of the previous pass only.
        for asset in self._selected(type):
            asset.reveal()

        assets: List[Asset] = []
        for bucket in self.buckets(type).values():
            assets.extend(bucket.exports())

        # Outputs resolving to the same file are exported once, at the earliest position.
        exported: List[Asset] = []
        seen = set()
        for asset in sorted(assets, key=export_order):
            if asset.key in seen:
                logger.debug("[assets] drop duplicate export %s", asset.key)
                continue
            seen.add(asset.key)
            exported.append(asset)
        return exported

    def export(self, type=None, format: str = "html") -> str:
        """Render the exported assets as markup."""
        if format != "html":
            raise ValueError(f"Don't know how to export for format ({format})")
        return "".join(self._render_html(asset) for asset in self.exports(type))

    @staticmethod
    def _render_html(asset: Asset) -> str:
        category = asset.type.category
        if category is Category.STYLESHEET:
            media = escape(str(asset.attributes.get("media") or "screen"), quote=True)
            if asset.external:
                return f'<link rel="stylesheet" type="text/css" media="{media}" href="{escape(asset.uri, quote=True)}" />\n'
            return f'<style media="{media}" type="text/css">\n{asset.content}\n</style>\n'
        elif category is Category.SCRIPT:
            if asset.external:
                return f'<script src="{escape(asset.uri, quote=True)}" type="text/javascript"></script>\n'
            return f'<script type="text/javascript">\n{asset.content}\n</script>\n'
        elif category is Category.OTHER:
            if not asset.external:
                raise UnknownKindError(f"Don't know how to render inline {asset.type.mime} content")
            return f'<link type="{escape(asset.type.mime, quote=True)}" href="{escape(asset.uri, quote=True)}" />\n'
        raise UnknownKindError(f"Don't know how to render {asset!r}")

    # -------------------------------
    # Output resolution
    # -------------------------------

    def output_path(self, context: FilterContext, **fields) -> str:
        """Resolve where ``context``'s filter writes its output, relative to the base."""
        kind = context.kind
        scheme = self.output_path_scheme
        if context.filter.default_output:
            # A catch-all default never overrides a filter's own output naming.
            scheme = [rule for rule in scheme if not isinstance(rule.condition, Default)]
        template = context.settings.get("output")
        if not template:
            template = resolve(scheme, kind, context.signature, path_fields).get("path")
        if not template:
            template = context.filter.default_output
        if not template:
            raise ConfigurationError(f"Couldn't get output path for {kind.name}:{context.signature}")

        values = {
            "name": self.name,
            "kind": kind.name,
            "ext": kind.type.extension,
            "signature": context.signature,
            "digest": context.digest,
            "content_digest": context.content_digest,
        }
        values.update(fields)
        return expand_path(template, **values)

    def output_asset(self, context: FilterContext, **fields) -> Asset:
        """Build the descriptor of ``context``'s output asset (its file is not written here)."""
        kind = context.kind
        attributes = resolve(self.output_asset_scheme, kind, context.signature, asset_fields)
        if kind.type.category is Category.STYLESHEET and kind.variant:
            attributes.setdefault("media", kind.variant)
        path = self.output_path(context, **fields)
        return Asset(path, base=self.base, type=kind.type, attributes=attributes)

    def __repr__(self) -> str:
        return f"<Registry {self.name} assets={len(self)} filters={len(self.filters)}>"
