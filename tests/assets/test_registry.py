"""
Tests for the asset registry: inclusion, grouping, export order and rendering.
"""

import pytest

from plugins.assets.asset import Asset, Base
from plugins.assets.errors import ConfigurationError, SourceMissingError, UnknownKindError
from plugins.assets.filters import Concat, Filter
from plugins.assets.registry import Registry


@pytest.fixture
def site(tmp_path):
    site_dir = tmp_path / "site"
    (site_dir / "static").mkdir(parents=True)
    for name, body in {
        "static/a.css": "a { color: red; }",
        "static/b.css": "b { color: blue; }",
        "static/print.css": "body { margin: 0; }",
        "static/app.js": "var app = 1;",
        "static/vendor.js": "var vendor = 2;",
    }.items():
        (site_dir / name).write_text(body, encoding="utf8")
    return site_dir


@pytest.fixture
def registry(site):
    return Registry(Base(site, "/docs/"))


class TestInclusion:
    """Test: including assets into the registry."""

    def test_include_is_idempotent(self, registry):
        first = registry.include("static/a.css")
        second = registry.include("static/a.css", rank=5)
        assert first is second
        assert len(registry) == 1
        assert first.rank == 0

    def test_include_detects_type(self, registry):
        asset = registry.include("static/app.js")
        assert asset.type.extension == "js"
        assert asset.uri == "/docs/static/app.js"
        assert asset.key == "static/app.js"

    def test_include_requires_path(self, registry):
        with pytest.raises(ValueError):
            registry.include("")

    def test_include_unknown_type(self, registry):
        with pytest.raises(UnknownKindError):
            registry.include("static/README")

    def test_bad_rank(self, registry):
        with pytest.raises(ValueError):
            registry.include("static/a.css", rank="first")

    def test_numeric_string_rank(self, registry):
        assert registry.include("static/a.css", rank="-2").rank == -2

    def test_include_content(self, registry):
        first = registry.include_content("alert(1);", "js")
        again = registry.include_content("alert(1);", "js")
        assert first is again
        assert first.key.startswith("%")
        assert first.inline
        assert registry.exists(first.key)

    def test_inline_content_needs_type(self, registry):
        with pytest.raises(UnknownKindError):
            registry.include_content("alert(1);", None)

    def test_empty(self, registry):
        assert registry.empty()
        registry.include("static/a.css")
        assert not registry.empty()
        assert "static/a.css" in registry
        assert registry.fetch("static/missing.css") is None


class TestExports:
    """Test: export passes without filters."""

    def test_round_trip_in_rank_order(self, registry):
        late = registry.include("static/a.css", rank=10)
        early = registry.include("static/app.js", rank=-1)
        middle = registry.include("static/b.css")
        assert registry.exports() == [early, middle, late]

    def test_equal_ranks_keep_insertion_order(self, registry):
        assets = [
            registry.include("static/b.css"),
            registry.include("static/vendor.js"),
            registry.include("static/a.css"),
            registry.include("static/app.js"),
        ]
        exported = registry.exports()
        assert exported == assets
        ranks = [asset.rank for asset in exported]
        assert ranks == sorted(ranks)

    def test_exports_by_type(self, registry):
        registry.include("static/a.css")
        script = registry.include("static/app.js")
        assert registry.exports("js") == [script]

    def test_exports_unknown_type(self, registry):
        with pytest.raises(UnknownKindError):
            registry.exports("nonsense")

    def test_grouping_by_kind(self, registry):
        registry.include("static/a.css")
        registry.include("static/print.css", media="print")
        registry.include("static/b.css")
        registry.include("static/app.js")
        buckets = registry.buckets()
        assert sorted(buckets) == ["css-print", "css-screen", "js"]
        assert [asset.key for asset in buckets["css-screen"].assets] == ["static/a.css", "static/b.css"]

    def test_grouping_is_pure(self, registry):
        registry.filter(Concat(output="static/{name}.{ext}"))
        registry.include("static/a.css")
        registry.include("static/b.css")
        grouped = {name: [a.key for a in bucket.assets] for name, bucket in registry.buckets().items()}
        first = [asset.key for asset in registry.exports()]
        second = [asset.key for asset in registry.exports()]
        assert grouped == {"css-screen": ["static/a.css", "static/b.css"]}
        assert first == second == ["static/assets.css"]
        assert len(registry) == 2

    def test_filters_attach_by_fit(self, registry):
        css_only = registry.filter(Filter(type="css"))
        anything = registry.filter(Filter())
        registry.include("static/a.css")
        registry.include("static/app.js")
        buckets = registry.buckets()
        assert buckets["css-screen"].filters == [css_only, anything]
        assert buckets["js"].filters == [anything]

    def test_filter_clear(self, registry):
        css_only = registry.filter(Filter(type="css"))
        anything = registry.filter(Filter())
        registry.filter_clear(type="css")
        assert registry.filters == [anything]
        registry.filter_clear(filter=anything)
        assert registry.filters == []
        registry.filter(css_only)
        registry.filter_clear()
        assert registry.filters == []

    def test_missing_source(self, registry, site):
        registry.filter(Concat(output="static/all.css"))
        registry.include("static/gone.css")
        with pytest.raises(SourceMissingError):
            registry.exports()


class TestExportHtml:
    """Test: markup rendering per content category."""

    def test_external_assets(self, registry):
        registry.include("static/print.css", media="print")
        registry.include("static/app.js")
        html = registry.export()
        assert '<link rel="stylesheet" type="text/css" media="print" href="/docs/static/print.css" />' in html
        assert '<script src="/docs/static/app.js" type="text/javascript"></script>' in html

    def test_inline_assets(self, registry):
        registry.include_content("body { margin: 0; }", "css")
        registry.include_content("alert(1);", "js", rank=1)
        html = registry.export()
        assert html.index("<style") < html.index("<script")
        assert '<style media="screen" type="text/css">\nbody { margin: 0; }\n</style>' in html
        assert '<script type="text/javascript">\nalert(1);\n</script>' in html

    def test_other_external(self, registry, site):
        (site / "static" / "logo.png").write_bytes(b"")
        registry.include("static/logo.png")
        assert registry.export() == '<link type="image/png" href="/docs/static/logo.png" />\n'

    def test_other_inline_is_unknown(self, registry):
        registry.include_content("...", "image/png")
        with pytest.raises(UnknownKindError):
            registry.export()

    def test_unknown_format(self, registry):
        with pytest.raises(ValueError):
            registry.export(format="xml")


class TestOutputResolution:
    """Test: output path and asset resolution through the registry schemes."""

    def test_output_path_from_scheme(self, site):
        registry = Registry(site, output_path_scheme=[("css:concat", "bundles/{name}-{kind}.{ext}")])
        registry.filter(Concat())
        registry.include("static/a.css")
        registry.include("static/b.css")
        (output,) = registry.exports()
        assert output.key == "bundles/assets-css-screen.css"

    def test_output_asset_scheme_sets_attributes(self, site):
        registry = Registry(
            site,
            output_path_scheme="bundles/",
            output_asset_scheme=[("css:*", {"title": "bundle"})],
        )
        registry.filter(Concat())
        registry.include("static/print.css", media="print")
        (output,) = registry.exports()
        assert output.attributes == {"title": "bundle", "media": "print"}
        assert output.key.startswith("bundles/assets-")

    def test_missing_output_path(self, registry):
        registry.filter(Concat())
        registry.include("static/a.css")
        with pytest.raises(ConfigurationError):
            registry.exports()

    def test_asset_write_creates_directories(self, site):
        asset = Asset("deep/er/x.css", base=Base(site))
        asset.write("x{}")
        assert (site / "deep" / "er" / "x.css").read_text(encoding="utf8") == "x{}"
