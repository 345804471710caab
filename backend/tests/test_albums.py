"""Tests for AlbumService and TrackService against a real storage root."""
import io
import zipfile

import pytest

from vinyl_vault.albums.duration import format_duration, format_duration_long
from vinyl_vault.albums.repository import AlbumRepository
from vinyl_vault.albums.schemas import Metadata
from vinyl_vault.albums.service import AlbumService
from vinyl_vault.config import StorageSettings
from vinyl_vault.errors import (
    AlbumNotFoundError,
    ConflictError,
    FileTooLargeError,
    NoFilesToArchiveError,
    NotOwnerError,
    PathEscapeError,
    TrackNotFoundError,
    UnsupportedFormatError,
    ValidationError,
)
from vinyl_vault.files import FileStorageService
from vinyl_vault.files.schemas import UploadedFile
from vinyl_vault.tracks.repository import TrackRepository
from vinyl_vault.tracks.schemas import AudioQuality, TrackUpdate
from vinyl_vault.tracks.service import TrackService

OWNER = 1
STRANGER = 2


def _upload(data: bytes, filename: str) -> UploadedFile:
    return UploadedFile(stream=io.BytesIO(data), filename=filename, size=len(data))


def _refuse_reference(path):
    raise PathEscapeError(f"path is outside upload dir: {path}")


@pytest.fixture
def albums(db, storage):
    return AlbumService(AlbumRepository(db), TrackRepository(db), storage)


@pytest.fixture
def tracks(db, storage):
    return TrackService(TrackRepository(db), AlbumRepository(db), storage)


@pytest.fixture
def album(albums):
    return albums.create_album(OWNER, Metadata(artist="Boards of Canada", album="Geogaddi", length=4020))


class TestDuration:
    @pytest.mark.parametrize("seconds, expected", [(0, "0:00"), (65, "1:05"), (4020, "67:00")])
    def test_short(self, seconds, expected):
        assert format_duration(seconds) == expected

    @pytest.mark.parametrize("seconds, expected", [(59, "0:59"), (3600, "1:00:00"), (4021, "1:07:01")])
    def test_long(self, seconds, expected):
        assert format_duration_long(seconds) == expected


class TestAlbumService:
    def test_create_without_cover(self, album):
        assert album.id is not None
        assert album.metadata.cover_art_path == ""
        assert album.tracks == []

    def test_create_with_cover(self, albums, storage):
        created = albums.create_album(OWNER, Metadata(album="Cover"), _upload(b"img", "front.jpg"))

        assert created.metadata.cover_art_path.startswith("covers/")
        assert albums.cover_art_file(created.id).read_bytes() == b"img"

    def test_bad_cover_rolls_back_album(self, albums, storage):
        with pytest.raises(UnsupportedFormatError):
            albums.create_album(OWNER, Metadata(album="Broken"), _upload(b"x", "front.gif"))

        assert albums.get_albums_by_user(OWNER) == []
        assert list(storage.cover_art_dir.iterdir()) == []

    def test_unreferenceable_cover_is_removed(self, albums, storage, monkeypatch):
        monkeypatch.setattr(storage, "to_stored_path", _refuse_reference)

        with pytest.raises(PathEscapeError):
            albums.create_album(OWNER, Metadata(album="Lost"), _upload(b"img", "c.png"))

        assert albums.get_albums_by_user(OWNER) == []
        assert list(storage.cover_art_dir.iterdir()) == []

    def test_unreferenceable_cover_on_update_keeps_old_cover(self, albums, storage, monkeypatch):
        created = albums.create_album(OWNER, Metadata(album="Old"), _upload(b"old", "a.png"))
        monkeypatch.setattr(storage, "to_stored_path", _refuse_reference)

        with pytest.raises(PathEscapeError):
            albums.update_album(OWNER, created.id, Metadata(album="New"), _upload(b"new", "b.png"))

        assert albums.cover_art_file(created.id).read_bytes() == b"old"
        assert len(list(storage.cover_art_dir.iterdir())) == 1

    def test_client_cover_path_is_ignored(self, albums):
        created = albums.create_album(OWNER, Metadata(cover_art_path="../../etc/passwd"))
        assert created.metadata.cover_art_path == ""

    def test_queries(self, albums, album):
        albums.create_album(STRANGER, Metadata(artist="Autechre"))

        assert [a.id for a in albums.get_albums_by_user(OWNER)] == [album.id]
        assert [a.id for a in albums.get_albums_by_artist("boards of canada")] == [album.id]
        assert albums.is_owner(album.id, OWNER)
        assert not albums.is_owner(album.id, STRANGER)
        with pytest.raises(AlbumNotFoundError):
            albums.get_album(999)

    def test_update_replaces_and_purges_cover(self, albums, storage):
        created = albums.create_album(OWNER, Metadata(album="Old"), _upload(b"old", "a.png"))
        old_cover = storage.upload_dir / created.metadata.cover_art_path

        updated = albums.update_album(
            OWNER, created.id, Metadata(album="New"), _upload(b"new", "b.webp")
        )

        assert updated.metadata.album == "New"
        assert updated.metadata.cover_art_path.endswith(".webp")
        assert not old_cover.exists()

    def test_update_without_cover_keeps_cover(self, albums):
        created = albums.create_album(OWNER, Metadata(album="Keep"), _upload(b"c", "a.png"))
        updated = albums.update_album(OWNER, created.id, Metadata(album="Kept"))
        assert updated.metadata.cover_art_path == created.metadata.cover_art_path

    def test_update_requires_owner(self, albums, album):
        with pytest.raises(NotOwnerError):
            albums.update_album(STRANGER, album.id, Metadata(album="Mine now"))

    def test_delete_purges_files(self, albums, tracks, storage):
        created = albums.create_album(OWNER, Metadata(album="Gone"), _upload(b"c", "a.png"))
        track = tracks.create_track(OWNER, created.id, 1, "Intro", _upload(b"a", "a.mp3"))

        albums.delete_album(OWNER, created.id)

        assert list(storage.cover_art_dir.iterdir()) == []
        assert list(storage.audio_dir.iterdir()) == []
        with pytest.raises(TrackNotFoundError):
            tracks.get_track(track.id)

    def test_build_archive(self, albums, tracks, album):
        tracks.create_track(OWNER, album.id, 1, "Ready Lets Go", _upload(b"one", "a.flac"))
        tracks.create_track(OWNER, album.id, 2, "Music Is Math", _upload(b"two", "b.flac"))

        zip_path, zip_name = albums.build_album_archive(OWNER, album.id)

        assert zip_name == f"album_{album.id}_Geogaddi.zip"
        with zipfile.ZipFile(zip_path) as zf:
            assert sorted(zf.namelist()) == [
                f"{album.id}_01_Ready_Lets_Go.flac",
                f"{album.id}_02_Music_Is_Math.flac",
            ]

    def test_concurrent_archives_do_not_share_a_file(self, albums, tracks, album, storage):
        tracks.create_track(OWNER, album.id, 1, "Gyroscope", _upload(b"one", "a.flac"))

        first_path, first_name = albums.build_album_archive(OWNER, album.id)
        second_path, second_name = albums.build_album_archive(OWNER, album.id)

        assert first_name == second_name == f"album_{album.id}_Geogaddi.zip"
        assert first_path != second_path
        assert first_path.name.startswith(f"album_{album.id}_Geogaddi_")
        storage.delete_archive(first_path)
        assert zipfile.is_zipfile(second_path)

    def test_archive_of_empty_album(self, albums, album):
        with pytest.raises(NoFilesToArchiveError):
            albums.build_album_archive(OWNER, album.id)

    def test_archive_requires_owner(self, albums, album):
        with pytest.raises(NotOwnerError):
            albums.build_album_archive(STRANGER, album.id)


class TestTrackService:
    def test_create_track(self, tracks, album):
        track = tracks.create_track(
            OWNER, album.id, 3, "My Song", _upload(b"x" * 10, "my song.flac"), duration=185
        )

        assert track.file_path == f"audio/{album.id}_03_My_Song.flac"
        assert track.duration == 185
        assert track.audio_quality.format == "flac"
        assert tracks.audio_file(track.id).read_bytes() == b"x" * 10

    def test_explicit_audio_quality(self, tracks, album):
        quality = AudioQuality(format="flac", bitrate=1411, sample_rate=44100, bit_depth=16, channels=2)
        track = tracks.create_track(OWNER, album.id, 1, "Q", _upload(b"x", "q.flac"), audio_quality=quality)
        assert track.audio_quality == quality

    def test_stranger_cannot_upload(self, tracks, album, storage):
        with pytest.raises(NotOwnerError):
            tracks.create_track(STRANGER, album.id, 1, "Nope", _upload(b"x", "a.mp3"))
        assert list(storage.audio_dir.iterdir()) == []

    def test_unknown_album(self, tracks):
        with pytest.raises(AlbumNotFoundError):
            tracks.create_track(OWNER, 404, 1, "Nope", _upload(b"x", "a.mp3"))

    def test_track_number_must_be_positive(self, tracks, album):
        with pytest.raises(ValidationError):
            tracks.create_track(OWNER, album.id, 0, "Zero", _upload(b"x", "a.mp3"))

    def test_ordered_by_track_number(self, tracks, album):
        tracks.create_track(OWNER, album.id, 2, "Second", _upload(b"x", "a.mp3"))
        tracks.create_track(OWNER, album.id, 1, "First", _upload(b"x", "b.mp3"))

        assert [t.title for t in tracks.get_tracks_by_album(album.id)] == ["First", "Second"]

    def test_update_track(self, tracks, album):
        track = tracks.create_track(OWNER, album.id, 1, "Draft", _upload(b"x", "a.mp3"))

        updated = tracks.update_track(OWNER, track.id, TrackUpdate(title="Final", duration=200))

        assert updated.title == "Final"
        assert updated.duration == 200
        assert updated.track_number == 1
        with pytest.raises(NotOwnerError):
            tracks.update_track(STRANGER, track.id, TrackUpdate(title="Mine"))

    def test_delete_track_purges_file(self, tracks, album, storage):
        track = tracks.create_track(OWNER, album.id, 1, "Bye", _upload(b"x", "a.mp3"))
        path = tracks.audio_file(track.id)

        with pytest.raises(NotOwnerError):
            tracks.delete_track(STRANGER, track.id)
        tracks.delete_track(OWNER, track.id)

        assert not path.exists()
        with pytest.raises(TrackNotFoundError):
            tracks.get_track(track.id)

    def test_duplicate_track_number_rejected(self, tracks, album, storage):
        first = tracks.create_track(OWNER, album.id, 3, "My Song", _upload(b"first", "a.flac"))

        with pytest.raises(ConflictError):
            tracks.create_track(OWNER, album.id, 3, "My Song", _upload(b"second", "b.flac"))

        assert tracks.audio_file(first.id).read_bytes() == b"first"
        assert [t.id for t in tracks.get_tracks_by_album(album.id)] == [first.id]

    def test_renumber_onto_taken_number_rejected(self, tracks, album):
        tracks.create_track(OWNER, album.id, 1, "One", _upload(b"1", "a.mp3"))
        second = tracks.create_track(OWNER, album.id, 2, "Two", _upload(b"2", "b.mp3"))

        with pytest.raises(ConflictError):
            tracks.update_track(OWNER, second.id, TrackUpdate(track_number=1))

    def test_delete_keeps_file_still_referenced(self, tracks, album):
        moved = tracks.create_track(OWNER, album.id, 3, "My Song", _upload(b"old", "a.flac"))
        tracks.update_track(OWNER, moved.id, TrackUpdate(track_number=4))
        reused = tracks.create_track(OWNER, album.id, 3, "My Song", _upload(b"new", "b.flac"))
        assert reused.file_path == moved.file_path

        tracks.delete_track(OWNER, reused.id)

        assert tracks.audio_file(moved.id).read_bytes() == b"new"

    def test_failed_reupload_keeps_existing_track_file(self, db, album, tmp_path):
        small = FileStorageService(
            StorageSettings(upload_dir=str(tmp_path / "small"), max_audio_file_size=20)
        )
        service = TrackService(TrackRepository(db), AlbumRepository(db), small)
        kept = service.create_track(OWNER, album.id, 3, "My Song", _upload(b"x" * 10, "a.flac"))
        service.update_track(OWNER, kept.id, TrackUpdate(track_number=4))

        too_big = UploadedFile(stream=io.BytesIO(b"y" * 50), filename="b.flac", size=5)
        with pytest.raises(FileTooLargeError):
            service.create_track(OWNER, album.id, 3, "My Song", too_big)

        assert service.audio_file(kept.id).read_bytes() == b"x" * 10

    def test_title_whitespace_does_not_reach_filename(self, tracks, album):
        track = tracks.create_track(OWNER, album.id, 3, " My Song ", _upload(b"x", "a.flac"))

        assert track.title == "My Song"
        assert track.file_path == f"audio/{album.id}_03_My_Song.flac"
