"""
Tests for build-skip markers.
"""

import os
from types import SimpleNamespace

import pytest

from plugins.assets.cache import CONTENT_DIGEST_DIR, DIGEST_DIR, BuildSkipCache
from plugins.assets.filters import Concat


@pytest.fixture
def context():
    return SimpleNamespace(digest="d1", content_digest="c1", mtime=0)


@pytest.fixture
def output():
    return SimpleNamespace(key="static/out.css", size=10)


class TestShouldBuild:
    """Test: precedence of the build-skip checks."""

    def test_missing_output_always_builds(self, tmp_path, context):
        cache = BuildSkipCache(tmp_path, check_age=False, check_digest=False)
        cache.touch(context)
        assert cache.should_build(context, SimpleNamespace(key="x", size=0))

    def test_new_digest_builds(self, tmp_path, context, output):
        cache = BuildSkipCache(tmp_path)
        assert cache.should_build(context, output)
        cache.touch(context)
        assert not cache.should_build(context, output)
        assert cache.should_build(SimpleNamespace(digest="d2", content_digest="c1", mtime=0), output)

    def test_newer_sources_build(self, tmp_path, context, output):
        cache = BuildSkipCache(tmp_path)
        cache.touch(context)
        marker = cache.digest_marker(context.digest)
        context.mtime = marker.stat().st_mtime + 60
        assert cache.should_build(context, output)

    def test_age_check_disabled(self, tmp_path, context, output):
        cache = BuildSkipCache(tmp_path, check_age=False)
        cache.touch(context)
        context.mtime = cache.digest_marker(context.digest).stat().st_mtime + 60
        assert not cache.should_build(context, output)

    def test_content_marker_decides(self, tmp_path, context, output):
        cache = BuildSkipCache(tmp_path, check_content=True)
        assert cache.should_build(context, output)
        cache.touch(context)
        renamed = SimpleNamespace(digest="other", content_digest="c1", mtime=context.mtime + 60)
        assert not cache.should_build(renamed, output)

    def test_all_checks_disabled(self, tmp_path, context, output):
        cache = BuildSkipCache(tmp_path, check_age=False, check_digest=False)
        assert not cache.should_build(context, output)


class TestTouch:
    """Test: which markers a pass leaves behind."""

    def test_digest_marker(self, tmp_path, context):
        BuildSkipCache(tmp_path).touch(context)
        assert (tmp_path / DIGEST_DIR / "d1").exists()
        assert not (tmp_path / CONTENT_DIGEST_DIR).exists()

    def test_content_marker(self, tmp_path, context):
        BuildSkipCache(tmp_path, check_age=False, check_digest=False, check_content=True).touch(context)
        assert (tmp_path / CONTENT_DIGEST_DIR / "c1").exists()
        assert not (tmp_path / DIGEST_DIR).exists()

    def test_touch_refreshes_mtime(self, tmp_path, context):
        cache = BuildSkipCache(tmp_path)
        cache.touch(context)
        marker = cache.digest_marker("d1")
        os.utime(marker, (0, 0))
        cache.touch(context)
        assert marker.stat().st_mtime > 0

    def test_nothing_enabled(self, tmp_path, context):
        BuildSkipCache(tmp_path, check_age=False, check_digest=False).touch(context)
        assert list(tmp_path.iterdir()) == []

    def test_for_filter(self, tmp_path):
        cache = BuildSkipCache.for_filter(tmp_path, Concat(check_content=True, check_age=False))
        assert cache.root == tmp_path / "concat"
        assert cache.check_content and cache.check_digest and not cache.check_age
