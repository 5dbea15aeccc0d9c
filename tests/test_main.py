"""
Tests for the command-line entry point's input validation.
"""

import sys

import pytest
import main


@pytest.fixture
def run_cli(monkeypatch):
    """Run main() with the given arguments; returns the exit code."""
    monkeypatch.setattr(main, "setup_logging", lambda **kwargs: None)

    def run(*args):
        monkeypatch.setattr(sys, "argv", ["main.py", *map(str, args)])
        with pytest.raises(SystemExit) as exc:
            main.main()
        return exc.value.code

    return run


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "in.mp4"
    path.write_bytes(b"\x00")
    return path


class TestInputValidation:

    def test_missing_video(self, run_cli, tmp_path, capsys):
        captions = tmp_path / "in.srt"
        captions.write_text("", encoding="utf-8")
        assert run_cli(tmp_path / "missing.mp4", captions, "-q") == 1
        assert "Video file not found" in capsys.readouterr().out

    def test_missing_captions(self, run_cli, video, tmp_path, capsys):
        assert run_cli(video, tmp_path / "missing.srt", "-q") == 1
        assert "Caption file not found" in capsys.readouterr().out

    def test_caption_file_not_utf8(self, run_cli, video, tmp_path, capsys):
        captions = tmp_path / "latin1.srt"
        captions.write_bytes(b"1\n00:00:01,000 --> 00:00:02,000\n\xff\xfe caf\xe9\n")
        assert run_cli(video, captions, "-q") == 1
        out = capsys.readouterr().out
        assert "not valid UTF-8" in out
        assert "Traceback" not in out
