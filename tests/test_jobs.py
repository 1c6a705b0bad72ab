from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from conftest import image_bytes
from core.comic_converter.core import ConversionService
from core.comic_converter.errors import EmptyArchiveError
from core.comic_converter.jobs import JobKind, JobManager, JobStatus


def build_manager(config) -> JobManager:
    return JobManager(config, ConversionService(config))


def test_archive_job_succeeds(config, make_archive):
    archive = make_archive("chapter01.cbz", {"1.png": image_bytes(), "2.png": image_bytes()})
    manager = build_manager(config)
    try:
        record = manager.submit_archive(archive)
        assert record.status is JobStatus.QUEUED
        final = manager.wait(record.job_id, timeout=30)
        assert final.status is JobStatus.SUCCEEDED
        assert final.progress == 1.0
        assert final.chapters_written == 1
        assert Path(final.output_path).name == "chapter01.pdf"
        assert Path(final.output_path).exists()
    finally:
        manager.shutdown()


def test_events_are_delivered_on_waiting_thread(config, make_archive):
    archive = make_archive("c.cbz", {"1.png": image_bytes(), "2.png": image_bytes()})
    manager = build_manager(config)
    seen: list[tuple[str, int]] = []
    try:
        record = manager.submit_archive(archive)
        manager.wait(
            record.job_id,
            on_event=lambda event: seen.append((event.kind, threading.get_ident())),
            timeout=30,
        )
    finally:
        manager.shutdown()

    kinds = [kind for kind, _ in seen]
    assert kinds[0] == "started"
    assert kinds[-1] == "succeeded"
    assert kinds.count("progress") == 2
    assert {ident for _, ident in seen} == {threading.get_ident()}


def test_failed_job_records_error(config, make_archive):
    archive = make_archive("empty.cbz", {"readme.txt": "no pages"})
    manager = build_manager(config)
    try:
        record = manager.submit_archive(archive)
        final = manager.wait(record.job_id, timeout=30)
    finally:
        manager.shutdown()
    assert final.status is JobStatus.FAILED
    assert final.error_code == "EMPTY_ARCHIVE"
    assert "empty.cbz" in final.error_message


def test_folder_job_reports_chapters(config, make_archive, tmp_path):
    folder = tmp_path / "Series"
    make_archive("ch01.cbz", {"1.png": image_bytes()}, folder=folder)
    make_archive("ch02.cbz", {"1.png": image_bytes()}, folder=folder)
    manager = build_manager(config)
    try:
        record = manager.submit_folder(folder, output_dir=tmp_path / "out")
        assert record.kind is JobKind.FOLDER
        final = manager.wait(record.job_id, timeout=30)
    finally:
        manager.shutdown()
    assert final.status is JobStatus.SUCCEEDED
    assert final.chapters_written == 2
    assert final.output_path == str(tmp_path / "out")
    assert (final.label, final.current, final.total) == ("ch02.cbz", 2, 2)


def test_upload_job_removes_stored_copy(config, make_archive):
    payload = make_archive("shared.cbz", {"1.png": image_bytes()}).read_bytes()
    manager = build_manager(config)
    try:
        record = manager.submit_upload("Shared.cbz", payload)
        final = manager.wait(record.job_id, timeout=30)
    finally:
        manager.shutdown()
    assert final.status is JobStatus.SUCCEEDED
    assert Path(final.output_path).name == "Shared.pdf"
    assert list((config.runtime.state_dir / "uploads").iterdir()) == []


def test_finished_jobs_are_listed(config, make_archive):
    archive = make_archive("c.cbz", {"1.png": image_bytes()})
    manager = build_manager(config)
    try:
        record = manager.submit_archive(archive)
        manager.wait(record.job_id, timeout=30)
        latest = manager.list_jobs()
        assert manager.cancel(record.job_id) is False
    finally:
        manager.shutdown()
    assert latest[-1]["job_id"] == record.job_id
    assert latest[-1]["status"] == "succeeded"


def test_wait_on_unknown_job_raises(config):
    manager = build_manager(config)
    try:
        with pytest.raises(KeyError):
            manager.wait("job-missing", timeout=0.1)
    finally:
        manager.shutdown()


def test_run_archive_shares_the_job_worker(config, make_archive):
    queued = make_archive("queued.cbz", {"1.png": image_bytes()})
    direct = make_archive("direct.cbz", {"1.png": image_bytes()})
    manager = build_manager(config)
    try:
        record = manager.submit_archive(queued)
        result = manager.run_archive(direct).result(timeout=30)
        final = manager.wait(record.job_id, timeout=30)
    finally:
        manager.shutdown()
    assert result.output_path.name == "direct.pdf"
    assert final.status is JobStatus.SUCCEEDED
    log_file = config.runtime.state_dir / config.runtime.log_file
    sources = [json.loads(line)["source"] for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert sources == ["queued.cbz", "direct.cbz"]


def test_run_archive_surfaces_conversion_errors(config, make_archive):
    archive = make_archive("empty.cbz", {"notes.txt": "none"})
    manager = build_manager(config)
    try:
        future = manager.run_archive(archive)
        with pytest.raises(EmptyArchiveError):
            future.result(timeout=30)
    finally:
        manager.shutdown()
