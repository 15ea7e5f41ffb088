"""Tests for CLI safe output handling with encoding fallback."""

import io
from unittest import mock

from rikka_ai.cli.lib.safe_output import (
    emoji,
    safe_print,
    safe_print_err,
    supports_unicode,
)


class _Cp1252Stream(io.StringIO):
    """Text stream that fails like a legacy Windows console on non-cp1252 text."""

    encoding = "cp1252"

    def write(self, s):
        s.encode(self.encoding)
        return super().write(s)


class TestUnicodeSupport:
    """Test unicode/emoji support detection."""

    def test_emoji_provides_fallback(self):
        """Test emoji always returns either unicode or ascii fallback."""
        result = emoji("❌", "[ERROR]")
        assert result in ["❌", "[ERROR]"]

    def test_utf8_stream_supports_unicode(self):
        stream = mock.Mock(encoding="utf-8")
        assert supports_unicode(stream) is True

    def test_legacy_stream_does_not(self):
        stream = mock.Mock(encoding="cp1252")
        assert supports_unicode(stream) is False

    def test_unknown_encoding(self):
        stream = mock.Mock(encoding="no-such-codec")
        assert supports_unicode(stream) is False


class TestSafePrint:
    """Test printing with encoding fallback."""

    def test_plain_text(self, capsys):
        safe_print("Hello, World!")
        assert capsys.readouterr().out == "Hello, World!\n"

    def test_end_and_flush(self, capsys):
        safe_print("tok", end="", flush=True)
        safe_print("en", end="")
        assert capsys.readouterr().out == "token"

    def test_unencodable_text_replaced(self):
        stream = _Cp1252Stream()
        with mock.patch("sys.stdout", stream):
            safe_print("reply: 你好 🙂")

        assert stream.getvalue().startswith("reply: ")
        assert "?" in stream.getvalue()

    def test_control_chars_dont_crash(self):
        """Test that control characters don't crash output."""
        with mock.patch("builtins.print"):
            safe_print("Normal\x00\x01\x02text")

    def test_err_goes_to_stderr(self, capsys):
        safe_print("oops", err=True)
        captured = capsys.readouterr()
        assert captured.err == "oops\n"
        assert captured.out == ""

    def test_safe_print_err_without_newline(self, capsys):
        safe_print_err("partial", end="")
        assert capsys.readouterr().err == "partial"
