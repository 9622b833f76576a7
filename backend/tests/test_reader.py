"""Tests for the rotation-aware file reader."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from ltsv_tail.ingest.reader import NamedPipeReader, RotatingFileReader


def _reader(path: Path, **kwargs) -> tuple[RotatingFileReader, list[str]]:
    lines: list[str] = []
    reader = RotatingFileReader(path, lines.append, **kwargs)
    return reader, lines


def _append(path: Path, text: str) -> None:
    with path.open("a", encoding="utf-8") as fh:
        fh.write(text)


def test_reads_only_new_complete_lines(log_path: Path) -> None:
    reader, lines = _reader(log_path)
    reader.open()
    _append(log_path, "a:1\nb:2\n")
    assert reader.read() == 8
    assert lines == ["a:1", "b:2"]
    assert reader.read() == 0
    _append(log_path, "c:3\n")
    reader.read()
    assert lines == ["a:1", "b:2", "c:3"]
    reader.close()


def test_partial_line_waits_for_terminator(log_path: Path) -> None:
    reader, lines = _reader(log_path)
    reader.open()
    _append(log_path, "a:1\nb:")
    assert reader.read() == 4
    assert lines == ["a:1"]
    assert reader.read() == 0
    _append(log_path, "2\n")
    assert reader.read() == 4
    assert lines == ["a:1", "b:2"]
    reader.close()


def test_crlf_is_stripped(log_path: Path) -> None:
    reader, lines = _reader(log_path)
    reader.open()
    log_path.write_bytes(b"a:1\r\n")
    reader.read()
    assert lines == ["a:1"]
    reader.close()


def test_rotation_drains_old_file_then_reads_new(log_path: Path, tmp_path: Path) -> None:
    _append(log_path, "old:1\nold:2\n")
    reader, lines = _reader(log_path)
    reader.open()
    reader.read()
    assert lines == ["old:1", "old:2"]

    _append(log_path, "old:3\nold:4\n")
    os.rename(log_path, tmp_path / "access.ltsv.log.1")
    log_path.write_text("new:1\n")

    reader.read()
    assert lines == ["old:1", "old:2", "old:3", "old:4", "new:1"]

    _append(log_path, "new:2\n")
    reader.read()
    assert lines == ["old:1", "old:2", "old:3", "old:4", "new:1", "new:2"]
    assert len(lines) == len(set(lines))
    reader.close()


def test_rotation_flushes_unterminated_tail_of_old_file(log_path: Path, tmp_path: Path) -> None:
    _append(log_path, "old:1\nold:2\n")
    reader, lines = _reader(log_path)
    reader.open()
    reader.read()
    _append(log_path, "old:3")
    os.rename(log_path, tmp_path / "rotated")
    log_path.write_text("new:1\n")
    reader.read()
    assert lines == ["old:1", "old:2", "old:3", "new:1"]
    reader.close()


def test_rotation_to_larger_file_is_not_detected(log_path: Path, tmp_path: Path) -> None:
    _append(log_path, "old:1\n")
    reader, lines = _reader(log_path)
    reader.open()
    reader.read()
    os.rename(log_path, tmp_path / "rotated")
    log_path.write_text("new:1\nnew:2\nnew:3\n")
    reader.read()
    # the old handle is still in use, so the new file is not seen
    assert lines == ["old:1"]
    reader.close()


def test_empty_new_file_is_not_treated_as_rotation(log_path: Path, tmp_path: Path) -> None:
    _append(log_path, "old:1\n")
    reader, lines = _reader(log_path)
    reader.open()
    reader.read()
    os.rename(log_path, tmp_path / "rotated")
    log_path.write_text("")
    reader.read()
    assert reader.prev_size == 0
    assert lines == ["old:1"]
    reader.close()


def test_reopen_disabled_keeps_old_handle(log_path: Path, tmp_path: Path) -> None:
    _append(log_path, "old:1\nold:2\n")
    reader, lines = _reader(log_path, reopen=False)
    reader.open()
    reader.read()
    os.rename(log_path, tmp_path / "rotated")
    log_path.write_text("n\n")
    _append(tmp_path / "rotated", "old:3\n")
    reader.read()
    assert lines == ["old:1", "old:2", "old:3"]
    reader.close()


def test_prev_size_tracks_observed_size(log_path: Path) -> None:
    reader, _ = _reader(log_path)
    reader.open()
    _append(log_path, "a:1\n")
    reader.read()
    assert reader.prev_size == 4
    reader.close()


def test_stat_failure_is_reported(tmp_path: Path) -> None:
    reader, _ = _reader(tmp_path / "missing.log")
    with pytest.raises(FileNotFoundError):
        reader.read()
    with pytest.raises(FileNotFoundError):
        reader.open()


def test_opens_lazily_when_file_appears(tmp_path: Path) -> None:
    path = tmp_path / "late.log"
    reader, lines = _reader(path)
    assert not reader.is_open
    path.write_text("a:1\n")
    reader.read()
    assert reader.is_open
    assert lines == ["a:1"]
    reader.close()
    assert not reader.is_open


def test_seek_applies_to_first_open_only(log_path: Path, tmp_path: Path) -> None:
    _append(log_path, "skip:1\nskip:2\n")
    reader, lines = _reader(log_path, seek_offset=0, seek_whence=os.SEEK_END)
    reader.open()
    _append(log_path, "keep:1\n")
    reader.read()
    assert lines == ["keep:1"]
    os.rename(log_path, tmp_path / "rotated")
    log_path.write_text("new:1\n")
    reader.read()
    assert lines == ["keep:1", "new:1"]
    reader.close()


def test_max_line_size_splits_long_lines(log_path: Path) -> None:
    reader, lines = _reader(log_path, max_line_size=4)
    reader.open()
    _append(log_path, "abcdefghij\nxy\n")
    reader.read()
    assert lines == ["abcd", "efgh", "ij", "xy"]
    reader.close()


def test_max_line_size_keeps_short_partial_line(log_path: Path) -> None:
    reader, lines = _reader(log_path, max_line_size=8)
    reader.open()
    _append(log_path, "abc")
    assert reader.read() == 0
    assert lines == []
    reader.close()


def test_invalid_utf8_is_replaced(log_path: Path) -> None:
    reader, lines = _reader(log_path)
    reader.open()
    log_path.write_bytes(b"host:\xff\n")
    reader.read()
    assert lines == ["host:\ufffd"]
    reader.close()


needs_fifo = pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="named pipes need mkfifo")


@needs_fifo
def test_named_pipe_reads_lines_as_they_arrive(tmp_path: Path) -> None:
    fifo = tmp_path / "access.fifo"
    os.mkfifo(fifo)
    lines: list[str] = []
    reader = NamedPipeReader(fifo, lines.append)
    reader.open()
    assert reader.read() == 0
    writer = os.open(fifo, os.O_WRONLY)
    try:
        os.write(writer, b"a:1\nb:")
        assert reader.read() == 6
        assert lines == ["a:1"]
        assert reader.read() == 0
        os.write(writer, b"2\r\nc:3")
        reader.read()
        assert lines == ["a:1", "b:2"]
    finally:
        os.close(writer)
    # the last writer is gone, so the unterminated tail is complete
    reader.read()
    assert lines == ["a:1", "b:2", "c:3"]
    reader.close()
    assert not reader.is_open


@needs_fifo
def test_named_pipe_accepts_successive_writers(tmp_path: Path) -> None:
    fifo = tmp_path / "access.fifo"
    os.mkfifo(fifo)
    lines: list[str] = []
    reader = NamedPipeReader(fifo, lines.append, max_line_size=4)
    reader.open()
    for payload in (b"abcdefghij\n", b"xy\n"):
        writer = os.open(fifo, os.O_WRONLY)
        os.write(writer, payload)
        os.close(writer)
        reader.read()
    assert lines == ["abcd", "efgh", "ij", "xy"]
    reader.close()


def test_named_pipe_missing_path(tmp_path: Path) -> None:
    reader = NamedPipeReader(tmp_path / "missing.fifo", lambda line: None)
    with pytest.raises(FileNotFoundError):
        reader.open()
    assert not reader.has_opened
