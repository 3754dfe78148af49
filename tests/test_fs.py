from __future__ import annotations

from treecache.utils.fs import create_dirs, list_dir, path_size, remove_paths, temp_dir


def test_path_size_sums_files_recursively(tmp_path) -> None:
    root = tmp_path / "tree"
    (root / "a" / "b").mkdir(parents=True)
    (root / "top.txt").write_bytes(b"x" * 10)
    (root / "a" / "mid.txt").write_bytes(b"x" * 20)
    (root / "a" / "b" / "leaf.txt").write_bytes(b"x" * 30)

    assert path_size(root) == 60
    assert path_size(root / "top.txt") == 10


def test_remove_paths_handles_files_dirs_and_missing(tmp_path) -> None:
    file_path = tmp_path / "file"
    file_path.write_bytes(b"x")
    dir_path = tmp_path / "dir"
    (dir_path / "nested").mkdir(parents=True)

    remove_paths(file_path, dir_path, tmp_path / "missing")

    assert list_dir(tmp_path) == []


def test_create_dirs_and_temp_dir(tmp_path) -> None:
    create_dirs(tmp_path / "x" / "y", tmp_path / "x" / "y")
    assert (tmp_path / "x" / "y").is_dir()

    with temp_dir() as scratch:
        assert scratch.is_dir()
    assert not scratch.exists()
