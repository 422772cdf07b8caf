"""
Buckets: the transient per-kind groups an export pass runs filters over.
"""

import logging
from typing import TYPE_CHECKING, List

from plugins.assets.asset import Asset
from plugins.assets.kind import Kind

if TYPE_CHECKING:
    from plugins.assets.filters import Filter
    from plugins.assets.registry import Registry

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")


def export_order(asset: Asset):
    """Sort key: rank first, then the order the asset was included in."""
    return asset.rank, asset.sequence


class Bucket:
    """Assets of one Kind plus the filters attached to them for one export pass."""

    def __init__(self, kind: Kind, registry: "Registry"):
        self.kind = kind
        self.registry = registry
        self.assets: List[Asset] = []
        self.filters: List["Filter"] = []

    def add_asset(self, asset: Asset) -> None:
        self.assets.append(asset)

    def add_filter(self, filter: "Filter") -> None:
        self.filters.append(filter)

    def members(self) -> List[Asset]:
        """Visible assets in export order, as a new list."""
        return sorted((asset for asset in self.assets if not asset.hidden), key=export_order)

    def substitute(self, matched: List[Asset], output: Asset) -> None:
        """Replace ``matched`` by ``output``, placed where the earliest matched asset was."""
        earliest = min(matched, key=export_order)
        for asset in matched:
            self.registry.hide(asset)
        output.rank = earliest.rank
        output.sequence = earliest.sequence
        output.reveal()
        self.assets.append(output)
        logger.debug("[assets] %s: %d asset(s) -> %s", self.kind, len(matched), output.key)

    def exports(self) -> List[Asset]:
        for filter in self.filters:
            filter.filter(self)
        return self.members()

    def __repr__(self) -> str:
        return f"<Bucket {self.kind} assets={len(self.assets)} filters={len(self.filters)}>"
