import pytest

from sqd_worker.guard import FsGuard


def test_creates_directory_and_removes_on_close(tmp_path):
    target = tmp_path / "a" / "b"
    guard = FsGuard(target)
    assert target.is_dir()
    (target / "file").write_text("x")
    guard.close()
    assert not target.exists()


def test_existing_path_rejected(tmp_path):
    with pytest.raises(FileExistsError):
        FsGuard(tmp_path)


def test_persist_moves_and_keeps(tmp_path):
    src = tmp_path / "tmp"
    dst = tmp_path / "final"
    with FsGuard(src) as guard:
        (src / "data").write_text("content")
        guard.persist(dst)
        assert guard.path is None
    assert not src.exists()
    assert (dst / "data").read_text() == "content"


def test_persist_twice_fails(tmp_path):
    guard = FsGuard(tmp_path / "tmp")
    guard.persist(tmp_path / "one")
    with pytest.raises(RuntimeError):
        guard.persist(tmp_path / "two")
    assert not (tmp_path / "two").exists()


def test_release_keeps_directory(tmp_path):
    target = tmp_path / "kept"
    guard = FsGuard(target)
    guard.release()
    guard.close()
    assert target.is_dir()


def test_context_manager_cleans_up_on_error(tmp_path):
    target = tmp_path / "tmp"
    with pytest.raises(KeyError):
        with FsGuard(target):
            raise KeyError("fail")
    assert not target.exists()


def test_own_existing(tmp_path):
    target = tmp_path / "existing"
    target.mkdir()
    guard = FsGuard.own(target)
    assert guard.path == target
    guard.close()
    assert not target.exists()


def test_own_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        FsGuard.own(tmp_path / "missing")