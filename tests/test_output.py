"""Tests for the local output writer."""

import io

import pytest

from log_emitter.output import LocalOutputError, LocalWriter


class _FailingStream(io.StringIO):
    def write(self, s):
        raise OSError("disk full")


class _CountingStream(io.StringIO):
    def __init__(self):
        super().__init__()
        self.flushes = 0

    def flush(self):
        self.flushes += 1
        super().flush()


class TestLocalWriter:
    def test_writes_line_with_newline(self):
        stream = io.StringIO()
        LocalWriter(stream).write('{"a":1}')
        assert stream.getvalue() == '{"a":1}\n'

    def test_flushes_every_line(self):
        stream = _CountingStream()
        writer = LocalWriter(stream)
        writer.write("one")
        writer.write("two")
        assert stream.flushes == 2

    def test_defaults_to_stdout(self, capsys):
        LocalWriter().write("hello")
        assert capsys.readouterr().out == "hello\n"

    def test_os_error_wrapped(self):
        with pytest.raises(LocalOutputError, match="disk full"):
            LocalWriter(_FailingStream()).write("x")

    def test_closed_stream(self):
        stream = io.StringIO()
        stream.close()
        with pytest.raises(LocalOutputError):
            LocalWriter(stream).write("x")
