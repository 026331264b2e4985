"""
End-to-end tests of the command line against a temporary workspace.

The detached player spawn and the stop signal are mocked.
"""

import signal

import pytest
from unittest.mock import MagicMock, patch

from playit.cli import ProgressBar, build_parser, main
from playit.library.playlist import PlaylistStore

from conftest import write_playlist, write_wav


@pytest.fixture
def cli(config_file):
    """Run main() with --config pointing at the test workspace."""

    def run(*argv):
        return main(["--config", str(config_file), *argv])

    return run


@pytest.fixture
def source_dir(tmp_path):
    src = tmp_path / "incoming"
    src.mkdir()
    write_wav(src / "first.wav")
    write_wav(src / "second.wav")
    (src / "notes.txt").write_text("not music")
    return src


class TestParser:

    def test_run_shuffle_flag(self):
        args = build_parser().parse_args(["run", "-s"])
        assert args.shuffle is True

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_run_music_hidden_from_help(self):
        assert "run-music" not in build_parser().format_help()


class TestLibraryCommands:

    def test_add_folder(self, cli, source_dir, workspace, capsys):
        assert cli("add", str(source_dir)) == 0

        out = capsys.readouterr().out
        assert "Successfully added 2 music file(s) to playlist" in out
        assert PlaylistStore(workspace / "playlist.json").load() == ["first.wav", "second.wav"]
        assert (workspace / "music" / "first.wav").exists()

    def test_add_non_music_file(self, cli, source_dir, capsys):
        assert cli("add", str(source_dir / "notes.txt")) == 1

        assert "not a supported music format" in capsys.readouterr().out

    def test_add_url(self, cli, workspace, capsys):
        response = MagicMock(status_code=200, headers={"Content-Length": "4"})
        response.__enter__.return_value = response
        response.iter_content.return_value = [b"ab", b"cd"]

        with patch("playit.library.importer.requests.get", return_value=response):
            assert cli("add", "https://example.com/track.mp3") == 0

        out = capsys.readouterr().out
        assert "100%" in out
        assert "Successfully downloaded and added music file from URL to playlist" in out
        assert PlaylistStore(workspace / "playlist.json").load() == ["track.mp3"]

    def test_playlist_listing(self, cli, workspace, capsys):
        write_wav(workspace / "music" / "here.wav", seconds=1.0)
        write_playlist(workspace / "playlist.json", ["here.wav", "gone.mp3"])

        assert cli("playlist") == 0

        out = capsys.readouterr().out
        assert "Playlist (2 songs):" in out
        assert "  1. here.wav (WAV, " in out
        assert "0:01)" in out
        assert "  2. gone.mp3 [File not found]" in out

    def test_playlist_missing(self, cli, capsys):
        assert cli("playlist") == 1

        assert "No playlist found" in capsys.readouterr().out

    def test_remove_by_index(self, cli, workspace, capsys):
        write_playlist(workspace / "playlist.json", ["a.mp3", "b.mp3", "c.mp3"])

        assert cli("remove", "2") == 0

        out = capsys.readouterr().out
        assert "Removed song: b.mp3" in out
        assert "2 songs remaining" in out
        assert PlaylistStore(workspace / "playlist.json").load() == ["a.mp3", "c.mp3"]

    def test_remove_invalid_index(self, cli, workspace, capsys):
        write_playlist(workspace / "playlist.json", ["a.mp3"])

        assert cli("remove", "5") == 1

        assert "Invalid index" in capsys.readouterr().out


class TestPlayerCommands:

    def test_status_stopped(self, cli, capsys):
        assert cli("status") == 0

        assert "Status: STOPPED" in capsys.readouterr().out

    def test_run_status_stop(self, cli, workspace, capsys):
        write_playlist(workspace / "playlist.json", ["a.mp3"])

        with patch("playit.player.supervisor.subprocess.Popen") as mock_popen:
            mock_popen.return_value = MagicMock(pid=4242)
            assert cli("run", "--shuffle") == 0

        assert "Music player started with PID: 4242" in capsys.readouterr().out
        cmd = mock_popen.call_args[0][0]
        assert "--shuffle" in cmd
        assert "--config" in cmd

        assert cli("status") == 0
        assert "Status: RUNNING (PID: 4242)" in capsys.readouterr().out

        with patch("playit.player.supervisor.os.kill") as mock_kill:
            assert cli("stop") == 0

        mock_kill.assert_called_once_with(4242, signal.SIGTERM)
        out = capsys.readouterr().out
        assert "The player will stop after the current song finishes." in out
        assert not (workspace / "playit.pid").exists()

    def test_run_twice(self, cli, workspace, capsys):
        write_playlist(workspace / "playlist.json", ["a.mp3"])
        (workspace / "playit.pid").write_text("4242")

        with patch("playit.player.supervisor.subprocess.Popen") as mock_popen:
            assert cli("run") == 1

        mock_popen.assert_not_called()
        out = capsys.readouterr().out
        assert "already running (PID: 4242)" in out
        assert "Starting music player" not in out

    def test_run_empty_playlist(self, cli, workspace, capsys):
        write_playlist(workspace / "playlist.json", [])

        with patch("playit.player.supervisor.subprocess.Popen") as mock_popen:
            assert cli("run") == 1

        mock_popen.assert_not_called()
        out = capsys.readouterr().out
        assert "Playlist is empty" in out
        assert "Starting music player" not in out

    def test_stop_when_stopped(self, cli, capsys):
        with patch("playit.player.supervisor.os.kill") as mock_kill:
            assert cli("stop") == 1

        mock_kill.assert_not_called()
        assert "No music player is currently running" in capsys.readouterr().out


class TestProgressBar:

    def test_renders_fifty_columns(self):
        lines = []

        class Stream:
            def write(self, text):
                lines.append(text)

            def flush(self):
                pass

        bar = ProgressBar("song.mp3", stream=Stream())
        bar(50, 100)
        bar(50, 100)
        bar(100, 100)

        assert len(lines) == 2
        assert lines[0] == "\rsong.mp3 [" + "=" * 25 + " " * 25 + "] 50%"
        assert lines[1].endswith("] 100%")

    def test_unknown_total_is_silent(self):
        lines = []
        bar = ProgressBar("x", stream=MagicMock(write=lines.append))
        bar(10, None)
        assert lines == []
