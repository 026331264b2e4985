"""
Unit tests for local imports and URL downloads.
"""

import pytest
import requests
from unittest.mock import MagicMock, patch

from playit.errors import LibraryImportError
from playit.library.importer import (
    DEFAULT_DOWNLOAD_NAME,
    download,
    filename_from_url,
    import_path,
    is_music_file,
    is_url,
)


def _response(status=200, chunks=(b"abc", b"def"), length="6"):
    response = MagicMock()
    response.status_code = status
    response.headers = {"Content-Length": length} if length is not None else {}
    response.iter_content.return_value = list(chunks)
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


class TestDetection:

    def test_music_extensions(self):
        assert is_music_file("song.mp3")
        assert is_music_file("SONG.WAV")
        assert is_music_file("x/y/z.flac")
        assert not is_music_file("cover.jpg")
        assert not is_music_file("noext")

    def test_is_url(self):
        assert is_url("https://example.com/a.mp3")
        assert is_url("http://example.com/a.mp3")
        assert not is_url("ftp://example.com/a.mp3")
        assert not is_url("music/a.mp3")

    def test_filename_from_url(self):
        assert filename_from_url("https://example.com/path/My%20Song.mp3") == "My Song.mp3"
        assert filename_from_url("https://example.com/") == DEFAULT_DOWNLOAD_NAME


class TestImportPath:
    """Copying local files into the music directory."""

    def test_single_file(self, tmp_path):
        src = tmp_path / "in" / "a.mp3"
        src.parent.mkdir()
        src.write_bytes(b"mp3 bytes")
        music = tmp_path / "music"

        names = import_path(src, music)

        assert names == ["a.mp3"]
        assert (music / "a.mp3").read_bytes() == b"mp3 bytes"

    def test_single_non_music_file(self, tmp_path):
        src = tmp_path / "notes.txt"
        src.write_text("hi")

        with pytest.raises(LibraryImportError, match="not a supported music format"):
            import_path(src, tmp_path / "music")

    def test_missing_path(self, tmp_path):
        with pytest.raises(LibraryImportError):
            import_path(tmp_path / "nothing.mp3", tmp_path / "music")

    def test_folder_walk(self, tmp_path):
        src = tmp_path / "album"
        (src / "disc2").mkdir(parents=True)
        (src / "01.mp3").write_bytes(b"1")
        (src / "cover.jpg").write_bytes(b"img")
        (src / "disc2" / "02.wav").write_bytes(b"2")
        (src / "disc2" / "03.flac").write_bytes(b"3")
        music = tmp_path / "music"

        names = import_path(src, music)

        assert names == ["01.mp3", "02.wav", "03.flac"]
        assert sorted(p.name for p in music.iterdir()) == ["01.mp3", "02.wav", "03.flac"]

    def test_file_already_in_music_dir(self, tmp_path):
        music = tmp_path / "music"
        music.mkdir()
        (music / "a.mp3").write_bytes(b"x")

        assert import_path(music / "a.mp3", music) == ["a.mp3"]
        assert (music / "a.mp3").read_bytes() == b"x"


class TestDownload:
    """Streaming HTTP downloads."""

    def test_download_success_with_progress(self, tmp_path):
        progress = []
        with patch("playit.library.importer.requests.get", return_value=_response()) as mock_get:
            name = download(
                "https://example.com/files/song.mp3",
                tmp_path / "music",
                progress=lambda written, total: progress.append((written, total)),
            )

        assert name == "song.mp3"
        assert (tmp_path / "music" / "song.mp3").read_bytes() == b"abcdef"
        assert progress == [(3, 6), (6, 6)]
        assert mock_get.call_args.kwargs["stream"] is True

    def test_download_unknown_length(self, tmp_path):
        progress = []
        with patch("playit.library.importer.requests.get", return_value=_response(length=None)):
            download(
                "https://example.com/song.wav",
                tmp_path,
                progress=lambda written, total: progress.append(total),
            )

        assert progress == [None, None]

    def test_download_rejects_non_music(self, tmp_path):
        with patch("playit.library.importer.requests.get") as mock_get:
            with pytest.raises(LibraryImportError, match="supported music format"):
                download("https://example.com/page.html", tmp_path)
        mock_get.assert_not_called()

    def test_download_http_error(self, tmp_path):
        with patch("playit.library.importer.requests.get", return_value=_response(status=404)):
            with pytest.raises(LibraryImportError, match="HTTP error: 404"):
                download("https://example.com/song.mp3", tmp_path)

        assert not (tmp_path / "song.mp3").exists()

    def test_download_connection_error_removes_partial(self, tmp_path):
        response = _response()
        response.iter_content.side_effect = requests.ConnectionError("reset")
        with patch("playit.library.importer.requests.get", return_value=response):
            with pytest.raises(LibraryImportError, match="Failed to download"):
                download("https://example.com/song.mp3", tmp_path)

        assert not (tmp_path / "song.mp3").exists()
