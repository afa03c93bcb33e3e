import zipfile
from datetime import datetime

import pytest

from cdda_backup.copier import SourceMissingError
from cdda_backup.writer import BackupWriter, archive_directory

FIXED_NOW = datetime(2024, 3, 9, 14, 5, 7)


@pytest.fixture
def writer(settings):
    return BackupWriter(settings, clock=lambda: FIXED_NOW)


@pytest.fixture
def world(save_root):
    save = save_root / "World"
    (save / "sub").mkdir(parents=True)
    (save / "a.txt").write_text("alpha")
    (save / "sub" / "b.txt").write_text("beta")
    return save


def test_constructor_creates_backup_directory(settings):
    assert not settings.backup_directory.exists()
    BackupWriter(settings)
    assert settings.backup_directory.is_dir()


def test_backup_name_uses_timestamp_format(writer, world):
    assert writer.backup_name(world) == "World 2024-03-09 14-05-07"


def test_backup_contains_exactly_the_save_files(writer, world, settings):
    archive = writer.backup_save(world)

    assert archive == settings.backup_directory / "World 2024-03-09 14-05-07.zip"
    with zipfile.ZipFile(archive) as zf:
        assert sorted(zf.namelist()) == ["a.txt", "sub/b.txt"]
        assert zf.read("sub/b.txt") == b"beta"
        assert all(
            info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist()
        )


def test_raw_snapshot_removed_after_archiving(writer, world, settings):
    writer.backup_save(world)
    assert [p.name for p in settings.backup_directory.iterdir()] == [
        "World 2024-03-09 14-05-07.zip"
    ]


def test_extracting_backup_reproduces_save(writer, save_root, tmp_path):
    save = save_root / "Deep"
    (save / "maps" / "0.0.0").mkdir(parents=True)
    (save / "empty").mkdir()
    (save / "master.gsav").write_bytes(b"\x00gsav\xff")
    (save / "maps" / "0.0.0" / "1.2.0.map").write_bytes(bytes(range(256)) * 10)

    archive = writer.backup_save(save)
    out = tmp_path / "restored"
    with zipfile.ZipFile(archive) as zf:
        for name in zf.namelist():
            assert not name.startswith("/")
            assert ".." not in name.split("/")
        zf.extractall(out)

    def tree(root):
        return {
            p.relative_to(root).as_posix(): (p.read_bytes() if p.is_file() else None)
            for p in root.rglob("*")
        }

    assert tree(out) == tree(save)


def test_distinct_saves_do_not_collide(writer, world, save_root):
    other = save_root / "Other"
    other.mkdir()
    (other / "x.txt").write_text("x")

    first = writer.backup_save(world)
    second = writer.backup_save(other)
    assert first != second
    assert first.exists() and second.exists()


def test_same_name_collision_is_rejected_cleanly(writer, world, settings):
    writer.backup_save(world)
    with pytest.raises(FileExistsError):
        writer.backup_save(world)
    assert len(list(settings.backup_directory.iterdir())) == 1


def test_missing_save_raises_source_missing(writer, save_root, settings):
    with pytest.raises(SourceMissingError):
        writer.backup_save(save_root / "Vanished")
    assert list(settings.backup_directory.iterdir()) == []


def test_archive_directory_refuses_existing_archive(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "f.txt").write_text("f")
    target = tmp_path / "out.zip"
    target.write_bytes(b"existing")
    with pytest.raises(FileExistsError):
        archive_directory(src, target)
    assert target.read_bytes() == b"existing"
