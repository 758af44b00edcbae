"""Tests for the output writer and its commit protocol."""

import json
import os

import pytest

from link_crawler.manifest import CrawlIndex, PageMetadata, PageRecord
from link_crawler.writer import OutputWriter, build_frontmatter, page_filename


def _save(writer, url, title="Guide", markdown="# Guide\n\nBody\n"):
    return writer.save_page(
        url,
        markdown,
        depth=0,
        links=[],
        metadata=PageMetadata(title=title),
        title=title,
    )


def test_page_filename_slug_rules():
    assert page_filename(1, "Getting Started!") == "pages/page-001-getting-started.md"
    assert page_filename(12, None) == "pages/page-012.md"
    assert page_filename(3, "???") == "pages/page-003.md"


def test_frontmatter_escaping():
    fm = build_frontmatter(
        url="https://example.com",
        title='Say "hi"\\\n\tnow\r',
        metadata=PageMetadata(description="line1\nline2"),
        crawled_at="2024-01-01T00:00:00.000Z",
        depth=2,
        hash="abc",
    )

    lines = fm.split("\n")
    assert lines[0] == "---"
    assert lines[1] == 'url: "https://example.com"'
    assert lines[2] == r'title: "Say \"hi\"\\\n\tnow\r"'
    assert lines[3] == r'description: "line1\nline2"'
    assert "depth: 2" in lines
    assert "hash: abc" in lines
    assert fm.endswith("---\n\n")


def test_save_page_writes_into_work_dir(make_config):
    config = make_config()
    writer = OutputWriter(config, "run1")

    record = _save(writer, "https://example.com")

    assert writer.work_dir.name == "out.tmp-run1"
    assert record.file == "pages/page-001-guide.md"
    text = (writer.work_dir / record.file).read_text(encoding="utf-8")
    assert text.startswith("---\nurl: ")
    assert text.endswith("# Guide\n\nBody\n")
    assert len(record.hash) == 64
    assert writer.next_page_number == 2
    assert not config.output_dir.exists()


def test_save_spec(make_config):
    writer = OutputWriter(make_config(), "run1")

    spec = writer.save_spec("https://example.com/api/openapi.json", '{"openapi": "3.0.0"}')

    assert spec.type == "openapi"
    assert spec.file == "specs/openapi.json"
    assert (writer.work_dir / "specs" / "openapi.json").read_text() == '{"openapi": "3.0.0"}'
    assert writer.save_spec("https://example.com/data.json", "{}") is None
    assert len(writer.result.specs) == 1


def test_finalize_replaces_previous_output(make_config):
    config = make_config()
    config.output_dir.mkdir()
    (config.output_dir / "old.txt").write_text("old")

    writer = OutputWriter(config, "run1")
    _save(writer, "https://example.com")
    writer.save_index({"https://example.com"})
    writer.finalize()

    assert not (config.output_dir / "old.txt").exists()
    assert (config.output_dir / "index.json").exists()
    assert not writer.work_dir.exists()
    assert not writer.backup_dir.exists()


def test_finalize_recovers_backup_after_crash(make_config):
    """A crash between backup and promotion leaves only .bak; it is restored."""
    config = make_config()
    writer = OutputWriter(config, "run1")
    writer.backup_dir.mkdir(parents=True)
    (writer.backup_dir / "index.json").write_text("{}")
    assert not config.output_dir.exists()

    writer.save_index()
    writer.finalize()

    # The recovered output was then replaced by the new run.
    data = json.loads((config.output_dir / "index.json").read_text())
    assert data["baseUrl"] == "https://example.com"
    assert not writer.backup_dir.exists()


def test_failed_promotion_restores_backup(make_config, monkeypatch):
    config = make_config()
    config.output_dir.mkdir()
    (config.output_dir / "keep.txt").write_text("previous")
    writer = OutputWriter(config, "run1")
    writer.save_index()

    real_rename = os.rename

    def flaky_rename(src, dst):
        if str(src) == str(writer.work_dir):
            raise OSError("disk full")
        return real_rename(src, dst)

    monkeypatch.setattr(os, "rename", flaky_rename)

    with pytest.raises(OSError, match="disk full"):
        writer.finalize()

    assert (config.output_dir / "keep.txt").read_text() == "previous"
    assert not writer.backup_dir.exists()


def test_backup_removal_failure_is_not_fatal(make_config, monkeypatch, caplog):
    config = make_config()
    config.output_dir.mkdir()
    writer = OutputWriter(config, "run1")
    writer.save_index()

    import link_crawler.writer as writer_module

    real_rmtree = writer_module.shutil.rmtree

    def failing_rmtree(path, *args, **kwargs):
        if str(path) == str(writer.backup_dir):
            raise OSError("busy")
        return real_rmtree(path, *args, **kwargs)

    monkeypatch.setattr(writer_module.shutil, "rmtree", failing_rmtree)

    writer.finalize()

    assert (config.output_dir / "index.json").exists()
    assert any("Failed to remove backup" in r.message for r in caplog.records)


def test_cleanup_keeps_previous_output(make_config):
    config = make_config()
    config.output_dir.mkdir()
    (config.output_dir / "keep.txt").write_text("previous")
    writer = OutputWriter(config, "run1")
    _save(writer, "https://example.com")

    writer.cleanup()
    writer.cleanup()

    assert not writer.work_dir.exists()
    assert (config.output_dir / "keep.txt").read_text() == "previous"


def test_diff_mode_writes_in_place_and_reuses_files(make_config):
    config = make_config(diff=True)
    previous = CrawlIndex(
        base_url="https://example.com",
        pages=[
            PageRecord(
                url="https://example.com/a",
                title="A",
                file="pages/page-007-a.md",
                depth=1,
                links=(),
                metadata=PageMetadata(),
                hash="old",
                crawled_at="2024-01-01T00:00:00.000Z",
            )
        ],
    )
    writer = OutputWriter(config, "run1", previous=previous)

    assert writer.work_dir == config.output_dir
    reused = _save(writer, "https://example.com/a", title="A renamed")
    fresh = _save(writer, "https://example.com/new", title="New")

    assert reused.file == "pages/page-007-a.md"
    assert fresh.file == "pages/page-008-new.md"

    writer.finalize()
    writer.cleanup()
    assert (config.output_dir / "pages" / "page-008-new.md").exists()
