"""Tests for the upload pipeline through FileStorageService."""
import io
import re
import stat

import pytest

from vinyl_vault.config import StorageSettings
from vinyl_vault.errors import (
    FileTooLargeError,
    PathEscapeError,
    RequiredFieldError,
    StorageIOError,
    UnsupportedFormatError,
    ValidationError,
)
from vinyl_vault.files import FileStorageService

MIB = 1 << 20


class _FailingStream(io.RawIOBase):
    def readable(self):
        return True

    def readinto(self, buffer):
        raise OSError("connection reset")


def _files_in(directory):
    return sorted(p.name for p in directory.iterdir()) if directory.exists() else []


class TestTrackAudio:
    def test_end_to_end(self, storage):
        payload = b"\x00\x01" * (2 * MIB)

        result = storage.save_track_audio(
            io.BytesIO(payload), "my song.flac", len(payload), album_id=7, track_number=3, title="My Song"
        )

        assert result.filename == "7_03_My_Song.flac"
        assert result.path == storage.audio_dir / "7_03_My_Song.flac"
        assert result.size == 4 * MIB
        assert result.path.read_bytes() == payload
        assert stat.S_IMODE(result.path.stat().st_mode) == 0o644
        assert storage.to_stored_path(result.path) == "audio/7_03_My_Song.flac"

    def test_extension_is_case_insensitive(self, storage):
        result = storage.save_track_audio(io.BytesIO(b"abc"), "Take.FLAC", 3, 1, 1, "Take")
        assert result.filename == "1_01_Take.flac"

    def test_unsupported_extension_writes_nothing(self, storage):
        with pytest.raises(UnsupportedFormatError) as excinfo:
            storage.save_track_audio(io.BytesIO(b"MZ"), "setup.exe", 2, 1, 1, "Setup")

        assert "flac" in excinfo.value.public_message
        assert _files_in(storage.audio_dir) == []

    def test_missing_extension(self, storage):
        with pytest.raises(UnsupportedFormatError):
            storage.save_track_audio(io.BytesIO(b"x"), "noext", 1, 1, 1, "x")

    def test_empty_title_is_required(self, storage):
        with pytest.raises(RequiredFieldError):
            storage.save_track_audio(io.BytesIO(b"x"), "a.mp3", 1, 1, 1, "   ")

    def test_same_track_overwrites(self, storage):
        storage.save_track_audio(io.BytesIO(b"first"), "a.mp3", 5, 2, 4, "Song")
        result = storage.save_track_audio(io.BytesIO(b"second"), "b.mp3", 6, 2, 4, "Song")

        assert result.path.read_bytes() == b"second"
        assert _files_in(storage.audio_dir) == ["2_04_Song.mp3"]

    def test_read_failure_leaves_no_partial_file(self, storage):
        with pytest.raises(StorageIOError):
            storage.save_track_audio(_FailingStream(), "a.wav", 10, 1, 1, "Broken")

        assert _files_in(storage.audio_dir) == []

    def test_read_failure_keeps_existing_file(self, storage):
        storage.save_track_audio(io.BytesIO(b"kept"), "a.wav", 4, 1, 1, "Broken")

        with pytest.raises(StorageIOError):
            storage.save_track_audio(_FailingStream(), "a.wav", 10, 1, 1, "Broken")

        assert (storage.audio_dir / "1_01_Broken.wav").read_bytes() == b"kept"
        assert _files_in(storage.audio_dir) == ["1_01_Broken.wav"]

    def test_title_is_stripped_before_naming(self, storage):
        result = storage.save_track_audio(io.BytesIO(b"x"), "a.mp3", 1, 1, 3, "  My Song ")
        assert result.filename == "1_03_My_Song.mp3"


class TestSizeLimits:
    @pytest.fixture
    def small_storage(self, tmp_path):
        service = FileStorageService(
            StorageSettings(upload_dir=str(tmp_path / "up"), max_audio_file_size=16)
        )
        service.ensure_directories()
        return service

    def test_declared_size_over_limit(self, small_storage):
        with pytest.raises(FileTooLargeError) as excinfo:
            small_storage.save_track_audio(io.BytesIO(b"x" * 17), "a.mp3", 17, 1, 1, "Big")

        assert excinfo.value.size == 17
        assert excinfo.value.max_size == 16
        assert _files_in(small_storage.audio_dir) == []

    def test_actual_bytes_over_limit_despite_small_declaration(self, small_storage):
        with pytest.raises(FileTooLargeError):
            small_storage.save_track_audio(io.BytesIO(b"x" * 64), "a.mp3", 4, 1, 1, "Liar")

        assert _files_in(small_storage.audio_dir) == []

    def test_rejected_reupload_keeps_previous_file(self, small_storage):
        first = small_storage.save_track_audio(io.BytesIO(b"original"), "a.flac", 8, 1, 3, "My Song")

        with pytest.raises(FileTooLargeError):
            small_storage.save_track_audio(io.BytesIO(b"x" * 50), "a.flac", 5, 1, 3, "My Song")

        assert first.path.read_bytes() == b"original"
        assert _files_in(small_storage.audio_dir) == ["1_03_My_Song.flac"]

    def test_exactly_at_limit(self, small_storage):
        result = small_storage.save_track_audio(io.BytesIO(b"x" * 16), "a.mp3", 16, 1, 1, "Edge")
        assert result.path.stat().st_size == 16


class TestCoverArt:
    def test_random_suffix_name(self, storage):
        result = storage.save_cover_art(io.BytesIO(b"\x89PNG"), "front.PNG", 4, album_id=7)

        assert re.fullmatch(r"7_[0-9a-f]{8}\.png", result.filename)
        assert result.path.parent == storage.cover_art_dir
        assert storage.to_stored_path(result.path).startswith("covers/")

    def test_two_covers_do_not_collide(self, storage):
        first = storage.save_cover_art(io.BytesIO(b"a"), "a.jpg", 1, album_id=3)
        second = storage.save_cover_art(io.BytesIO(b"b"), "b.jpg", 1, album_id=3)

        assert first.path != second.path
        assert first.path.read_bytes() == b"a"

    def test_album_id_must_be_positive(self, storage):
        with pytest.raises(ValidationError):
            storage.save_cover_art(io.BytesIO(b"a"), "a.jpg", 1, album_id=0)

    def test_audio_extension_is_not_cover_art(self, storage):
        with pytest.raises(UnsupportedFormatError):
            storage.save_cover_art(io.BytesIO(b"a"), "a.flac", 1, album_id=1)


class TestDeleteStoredFile:
    def test_relative_and_absent(self, storage):
        result = storage.save_track_audio(io.BytesIO(b"x"), "a.mp3", 1, 1, 1, "Gone")
        stored = storage.to_stored_path(result.path)

        storage.delete_stored_file(stored)
        assert not result.path.exists()
        # Already absent counts as success.
        storage.delete_stored_file(stored)

    def test_absolute_path(self, storage):
        result = storage.save_cover_art(io.BytesIO(b"x"), "a.jpg", 1, 1)
        storage.delete_stored_file(result.path)
        assert not result.path.exists()

    def test_outside_roots_is_refused(self, storage, tmp_path):
        outside = tmp_path / "keep.txt"
        outside.write_text("keep")

        with pytest.raises(PathEscapeError):
            storage.delete_stored_file(outside)

        assert outside.exists()
