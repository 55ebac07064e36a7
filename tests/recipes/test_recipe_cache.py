"""Tests for the on-disk recipe cache."""

from __future__ import annotations

import json
import os

from agent_rules.config import DAY_MS, HOUR_MS
from agent_rules.recipes.cache import (
    METADATA_FILENAME,
    CacheStore,
    format_bytes,
    now_ms,
)
from agent_rules.recipes.types import CachedFile, RecipeFileInfo


def _write_metadata(store: CacheStore, last_update: int, files: list[dict] | None = None) -> None:
    store.ensure_root()
    store.metadata_path.write_text(
        json.dumps({"lastUpdate": last_update, "recipeFiles": files or []}), encoding="utf-8"
    )


class TestMetadata:
    """Metadata read/write and validity."""

    def test_missing_metadata_is_invalid(self, cache_store):
        assert cache_store.read_metadata() is None
        assert cache_store.is_valid(DAY_MS) is False

    def test_write_metadata_creates_valid_cache(self, cache_store):
        cache_store.ensure_root()

        assert cache_store.write_metadata([RecipeFileInfo("a.json", "abc")])

        metadata = cache_store.read_metadata()
        assert metadata is not None
        assert [f.to_dict() for f in metadata.recipe_files] == [
            {"name": "a.json", "contentHash": "abc"}
        ]
        assert abs(metadata.last_update - now_ms()) < 5000
        assert cache_store.is_valid(DAY_MS) is True

    def test_write_metadata_twice_does_not_flap(self, cache_store):
        cache_store.ensure_root()
        files = [RecipeFileInfo("a.json", "abc")]

        cache_store.write_metadata(files)
        first = cache_store.is_valid(DAY_MS)
        cache_store.write_metadata(files)
        second = cache_store.is_valid(DAY_MS)

        assert first is True
        assert second is True

    def test_expired_metadata_is_invalid(self, cache_store):
        _write_metadata(cache_store, now_ms() - 48 * HOUR_MS)

        assert cache_store.is_valid(24 * HOUR_MS) is False
        assert cache_store.is_valid(72 * HOUR_MS) is True

    def test_corrupt_metadata_reads_as_absent(self, cache_store):
        cache_store.ensure_root()
        cache_store.metadata_path.write_text("{not json", encoding="utf-8")

        assert cache_store.read_metadata() is None
        assert cache_store.is_valid(DAY_MS) is False

    def test_non_numeric_last_update_reads_as_absent(self, cache_store):
        _write_metadata(cache_store, "yesterday")  # type: ignore[arg-type]

        assert cache_store.read_metadata() is None

    def test_write_metadata_leaves_no_temp_file(self, cache_store):
        cache_store.ensure_root()
        cache_store.write_metadata([])

        assert sorted(os.listdir(cache_store.root)) == [METADATA_FILENAME]

    def test_write_metadata_without_root_fails_softly(self, cache_store):
        assert cache_store.write_metadata([]) is False


class TestRecipeFiles:
    def test_read_all_skips_metadata_and_bad_files(self, cache_store, seed_cache, make_recipe):
        seed_cache("react.json", make_recipe())
        (cache_store.root / "broken.yaml").write_text("a: [", encoding="utf-8")
        cache_store.write_metadata([])

        assert cache_store.read_all() == {"react": make_recipe()}

    def test_read_all_without_root(self, cache_store):
        assert cache_store.read_all() == {}

    def test_write_many_replaces_previous_set(self, cache_store, seed_cache, make_recipe):
        seed_cache("old.json", make_recipe("Old"))
        content = json.dumps(make_recipe("New"))

        assert cache_store.write_many([CachedFile("new.json", content, "h1")])

        assert (cache_store.root / "new.json").read_text(encoding="utf-8") == content
        assert not (cache_store.root / "old.json").exists()
        metadata = cache_store.read_metadata()
        assert [f.name for f in metadata.recipe_files] == ["new.json"]

    def test_write_many_keeps_content_verbatim(self, cache_store):
        content = "# comment kept\nname: Verbatim\n"

        cache_store.write_many([CachedFile("v.yaml", content)])

        assert (cache_store.root / "v.yaml").read_text(encoding="utf-8") == content

    def test_write_many_creates_root(self, cache_store):
        assert not cache_store.root.exists()

        cache_store.write_many([CachedFile("a.json", "{}")])

        assert cache_store.root.is_dir()

    def test_write_many_refuses_paths_outside_root(self, cache_store, tmp_path):
        cache_store.write_many(
            [CachedFile("../escape.json", "{}"), CachedFile("inside.json", "{}")]
        )

        assert not (tmp_path / "escape.json").exists()
        assert (cache_store.root / "inside.json").exists()
        assert [f.name for f in cache_store.read_metadata().recipe_files] == ["inside.json"]


class TestClearAndInfo:
    def test_clear_missing_root(self, cache_store):
        assert cache_store.clear() is True

    def test_clear_removes_everything(self, cache_store, seed_cache, make_recipe):
        seed_cache("a.json", make_recipe())
        (cache_store.root / "nested").mkdir()
        (cache_store.root / "nested" / "file.txt").write_text("x", encoding="utf-8")
        cache_store.write_metadata([])

        assert cache_store.clear() is True
        assert list(cache_store.root.iterdir()) == []

    def test_info_without_cache(self, cache_store):
        info = cache_store.info(DAY_MS)

        assert info.exists is False
        assert info.cache_dir == str(cache_store.root)
        assert info.to_dict()["last_update"] is None

    def test_info_reports_age_and_count(self, cache_store):
        _write_metadata(
            cache_store,
            now_ms() - 2 * HOUR_MS,
            [{"name": "a.json"}, {"name": "b.yaml"}],
        )

        info = cache_store.info(DAY_MS)

        assert info.exists is True
        assert info.is_valid is True
        assert info.recipe_count == 2
        assert 2 * HOUR_MS <= info.age_ms < 3 * HOUR_MS


class TestHousekeeping:
    def test_usage_report(self, cache_store):
        cache_store.ensure_root()
        (cache_store.root / "a.json").write_bytes(b"x" * 10)
        (cache_store.root / "sub").mkdir()
        (cache_store.root / "sub" / "b.txt").write_bytes(b"y" * 5)
        (cache_store.root / "sub" / "deeper").mkdir()
        (cache_store.root / "sub" / "deeper" / "c.txt").write_bytes(b"z" * 7)

        usage = cache_store.usage_report()

        assert usage.per_entry_size_bytes == {"a.json": 10, "sub": 12}
        assert usage.total_size_bytes == 22

    def test_usage_report_missing_root(self, cache_store):
        usage = cache_store.usage_report()

        assert usage.total_size_bytes == 0
        assert usage.per_entry_size_bytes == {}

    def test_prune_older_than(self, cache_store):
        cache_store.ensure_root()
        old = cache_store.root / "old"
        fresh = cache_store.root / "fresh"
        iso_old = cache_store.root / "iso-old"
        unreadable = cache_store.root / "unreadable"
        no_metadata = cache_store.root / "no-metadata"
        for directory in (old, fresh, iso_old, unreadable, no_metadata):
            directory.mkdir()
        (old / "metadata.json").write_text(
            json.dumps({"lastUpdated": now_ms() - 40 * DAY_MS}), encoding="utf-8"
        )
        (fresh / "metadata.json").write_text(
            json.dumps({"lastUpdate": now_ms() - DAY_MS}), encoding="utf-8"
        )
        (iso_old / "metadata.json").write_text(
            json.dumps({"lastUpdated": "2020-01-01T00:00:00Z"}), encoding="utf-8"
        )
        (unreadable / "metadata.json").write_text("{bad", encoding="utf-8")

        removed = cache_store.prune_older_than(30 * DAY_MS)

        assert sorted(removed) == ["iso-old", "old"]
        assert fresh.exists()
        assert unreadable.exists()
        assert no_metadata.exists()

    def test_format_bytes(self):
        assert format_bytes(0) == "0 Bytes"
        assert format_bytes(512) == "512 Bytes"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(1024 * 1024) == "1 MB"
