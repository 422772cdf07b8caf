"""
An MkDocs plugin that groups, filters and injects CSS and JS assets.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import yaml
from mkdocs.config import config_options as c
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.plugins import BasePlugin
from mkdocs.structure.pages import Page

from plugins.assets.asset import Base
from plugins.assets.errors import ConfigurationError
from plugins.assets.filters import Collect, Concat, Filter, Minifier
from plugins.assets.registry import DEFAULT_CACHE_DIR, DEFAULT_NAME, Registry

# Use MkDocs' recommended plugin logger namespace so debug logs appear only with `--verbose`.
logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# Filter names usable in the `filters` option.
FILTERS: Dict[str, type] = {
    "collect": Collect,
    "concat": Concat,
    "minify": Minifier,
}

# Used when neither the plugin config nor the scheme file gives output path rules.
DEFAULT_OUTPUT_PATH = "assets/{name}-{kind}-{digest:.12}.{ext}"

# Where the rendered markup for each asset type goes in a page.
ANCHORS: Dict[str, str] = {
    "css": "</head>",
    "js": "</body>",
}


class AssetsPlugin(BasePlugin):
    """MkDocs plugin that bundles the configured stylesheets and scripts into the built pages.

    Configuration options (all optional):
    - css_files / js_files (str|list): paths under site_dir, or mappings with `path`, `rank` and `media`.
    - filters (list): filter names (`concat`, `collect`, `minify`) or mappings with `filter`,
      an optional `type` and any filter settings.
    - output_path (str|list): output path rules; a string is the default rule.
    - output_asset (list): output asset attribute rules.
    - scheme_file (str): YAML file (relative to mkdocs.yml) with `filters`, `output_path`
      and `output_asset` keys, used in place of the inline options it defines.
    - name (str): value of `{name}` in output path templates.
    - base_uri (str): URI prefix of site_dir; defaults to the path of `site_url`.
    - cache_dir (str): build-skip marker directory, relative to mkdocs.yml.
    - debug (bool): verbose `[assets]` logging.
    """

    config_scheme = (
        ('css_files',    c.Type((str, list), default=[])),
        ('js_files',     c.Type((str, list), default=[])),
        ('filters',      c.Type(list, default=[])),
        ('output_path',  c.Type((str, list), default=DEFAULT_OUTPUT_PATH)),
        ('output_asset', c.Type(list, default=[])),
        ('scheme_file',  c.Type(str, default="")),
        ('name',         c.Type(str, default=DEFAULT_NAME)),
        ('base_uri',     c.Type(str, default="")),
        ('cache_dir',    c.Type(str, default=DEFAULT_CACHE_DIR)),
        ('debug',        c.Type(bool, default=False)),
    )

    def __init__(self):
        super().__init__()
        self.registry: Optional[Registry] = None
        # Rendered markup per asset type, computed once per build.
        self._markup: Dict[str, str] = {}

    # -------------------------------
    # Helpers
    # -------------------------------

    def _dbg(self, msg: str, *args) -> None:
        """Debug log gated by plugin config.

        MkDocs only shows DEBUG when run with `-v/--verbose`.
        """
        if not self.config.get("debug", False):
            return
        logger.debug("[assets] " + msg, *args)

    @staticmethod
    def _project_root(config: MkDocsConfig) -> Path:
        config_file = config.get("config_file_path")
        return Path(config_file).resolve().parent if config_file else Path.cwd()

    def load_scheme_file(self, project_root: Path) -> Dict[str, Any]:
        """Load the YAML scheme file; an unset option yields {}."""
        scheme_file = self.config.get("scheme_file")
        if not scheme_file:
            return {}
        scheme_path = (project_root / scheme_file).resolve()
        if not scheme_path.exists():
            raise ConfigurationError(f"scheme_file not found at {scheme_path}")
        try:
            with scheme_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"unable to parse scheme_file {scheme_path}: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"scheme_file {scheme_path} must contain a mapping")
        self._dbg("loaded scheme file %s keys=%s", scheme_path.as_posix(), ",".join(data))
        return data

    @staticmethod
    def build_filters(entries: List[Union[str, Dict[str, Any]]]) -> List[Filter]:
        """Instantiate filters from names or `{filter: name, type: ..., **settings}` mappings."""
        filters: List[Filter] = []
        for entry in entries or []:
            if isinstance(entry, str):
                name, settings = entry, {}
            elif isinstance(entry, dict) and "filter" in entry:
                settings = dict(entry)
                name = settings.pop("filter")
            else:
                raise ConfigurationError(f"Don't understand filter {entry!r}")
            try:
                filter_class = FILTERS[name]
            except KeyError:
                raise ConfigurationError(f"Unknown filter '{name}' (known: {', '.join(sorted(FILTERS))})") from None
            filters.append(filter_class(**settings))
        return filters

    @staticmethod
    def _file_entries(entries: Union[str, List[Any]]) -> List[Dict[str, Any]]:
        """Normalize a css_files/js_files option into mappings with at least a `path`."""
        if not isinstance(entries, list):
            entries = [entries]
        normalized: List[Dict[str, Any]] = []
        for entry in entries:
            if isinstance(entry, str):
                normalized.append({"path": entry})
            elif isinstance(entry, dict) and entry.get("path"):
                normalized.append(dict(entry))
            else:
                raise ConfigurationError(f"Don't understand asset entry {entry!r}")
        return normalized

    def build_registry(self, config: MkDocsConfig) -> Registry:
        """Build a fresh registry from the plugin config and include the configured files."""
        project_root = self._project_root(config)
        scheme = self.load_scheme_file(project_root)

        base_uri = self.config.get("base_uri") or urlparse(config.get("site_url") or "").path or "/"
        registry = Registry(
            Base(Path(config["site_dir"]), base_uri),
            name=self.config.get("name") or DEFAULT_NAME,
            output_path_scheme=scheme.get("output_path", self.config.get("output_path")),
            output_asset_scheme=scheme.get("output_asset", self.config.get("output_asset")),
            filter_scheme=self.build_filters(scheme.get("filters", self.config.get("filters"))),
            cache_dir=project_root / (self.config.get("cache_dir") or DEFAULT_CACHE_DIR),
        )

        for file_type in ("css", "js"):
            for entry in self._file_entries(self.config.get(f"{file_type}_files") or []):
                path = entry.pop("path")
                rank = entry.pop("rank", 0)
                registry.include(path, rank=rank, type=entry.pop("type", file_type), **entry)
        self._dbg("registry %s with %d asset(s), %d filter(s)", registry.name, len(registry), len(registry.filters))
        return registry

    def render(self) -> Dict[str, str]:
        """Export every asset type once per build and cache the markup."""
        if not self._markup and self.registry is not None:
            for file_type in ANCHORS:
                self._markup[file_type] = self.registry.export(file_type)
                self._dbg("rendered %s markup (%d chars)", file_type, len(self._markup[file_type]))
        return self._markup

    @staticmethod
    def inject(html: str, markup: str, anchor: str) -> str:
        """Insert `markup` just before the last `anchor`; append it when the anchor is missing."""
        if not markup:
            return html
        insert_pos = html.lower().rfind(anchor)
        if insert_pos != -1:
            return html[:insert_pos] + markup + html[insert_pos:]
        return html + "\n" + markup

    # -------------------------------
    # MkDocs hooks
    # -------------------------------

    def on_pre_build(self, *, config: MkDocsConfig) -> None:
        """Before build: include the configured assets into a new registry."""
        self.registry = self.build_registry(config)
        self._markup = {}

    def on_post_page(self, output: str, *, page: Page, config: MkDocsConfig) -> Optional[str]:
        """Inject stylesheet and script markup into every rendered page."""
        markup = self.render()
        for file_type, anchor in ANCHORS.items():
            output = self.inject(output, markup.get(file_type, ""), anchor)
        self._dbg("[post_page] injected assets into %s", getattr(page, "url", ""))
        return output
