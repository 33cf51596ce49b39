import pytest

from conftest import file_entry, sha1
from manifest_sync.core.expander import FileTreeExpander
from manifest_sync.core.progress import ProgressTracker
from manifest_sync.exceptions import ManifestError
from manifest_sync.models.stats import SyncStats


@pytest.fixture
def tracker():
    return ProgressTracker()


@pytest.fixture
def expander(pool, tracker):
    return FileTreeExpander(pool, tracker, SyncStats())


async def expand_and_wait(expander, document, output_dir):
    count = await expander.expand(document, output_dir)
    assert await expander.pool.drain(timeout=5)
    return count


class TestDirectories:
    async def test_existing_directory_schedules_no_job(
        self, expander, tracker, tmp_path, monkeypatch
    ):
        (tmp_path / "libs").mkdir()
        submitted = []
        monkeypatch.setattr(expander.pool, "submit", submitted.append)

        await expander.expand({"files": {"libs": {"type": "directory"}}}, tmp_path)

        assert submitted == []
        assert tracker.completed == tracker.total == 1
        assert expander.stats.directories_existing == 1

    async def test_missing_directory_is_created(self, expander, tracker, tmp_path):
        await expand_and_wait(
            expander, {"files": {"a/b": {"type": "directory"}}}, tmp_path
        )

        assert (tmp_path / "a" / "b").is_dir()
        assert tracker.completed == 1
        assert expander.stats.directories_created == 1


class TestFiles:
    async def test_matching_file_is_not_fetched(
        self, expander, tracker, manifest_server, tmp_path
    ):
        payload = b"already here"
        (tmp_path / "game.jar").write_bytes(payload)
        url = manifest_server.add("/game.jar", payload)

        await expand_and_wait(
            expander, {"files": {"game.jar": file_entry(url, payload)}}, tmp_path
        )

        assert manifest_server.total_hits == 0
        assert tracker.completed == 1
        assert expander.stats.files_verified == 1

    async def test_missing_file_is_downloaded_once(
        self, expander, tracker, manifest_server, tmp_path
    ):
        payload = b"fresh bytes"
        url = manifest_server.add("/lib.so", payload)

        await expand_and_wait(
            expander,
            {"files": {"natives/lib.so": file_entry(url, payload)}},
            tmp_path,
        )

        assert (tmp_path / "natives" / "lib.so").read_bytes() == payload
        assert manifest_server.hits["/lib.so"] == 1
        assert expander.stats.files_downloaded == 1
        assert expander.stats.bytes_downloaded == len(payload)

    async def test_stale_file_is_replaced(
        self, expander, tracker, manifest_server, tmp_path
    ):
        payload = b"new version"
        (tmp_path / "config.txt").write_bytes(b"old version")
        url = manifest_server.add("/config.txt", payload)

        await expand_and_wait(
            expander, {"files": {"config.txt": file_entry(url, payload)}}, tmp_path
        )

        assert (tmp_path / "config.txt").read_bytes() == payload
        assert manifest_server.hits["/config.txt"] == 1
        assert tracker.failed == 0

    async def test_hash_comparison_ignores_case(
        self, expander, manifest_server, tmp_path
    ):
        payload = b"case"
        (tmp_path / "f").write_bytes(payload)
        entry = {
            "type": "file",
            "downloads": {
                "raw": {"sha1": sha1(payload).upper(), "url": manifest_server.url("/f")}
            },
        }

        await expand_and_wait(expander, {"files": {"f": entry}}, tmp_path)

        assert manifest_server.total_hits == 0

    async def test_failed_download_is_counted(
        self, expander, tracker, manifest_server, tmp_path
    ):
        entry = file_entry(manifest_server.url("/gone"), b"whatever")

        await expand_and_wait(expander, {"files": {"gone.bin": entry}}, tmp_path)

        assert tracker.completed == 1
        assert tracker.failed == 1
        assert expander.stats.failed_entries == ["gone.bin"]
        assert not (tmp_path / "gone.bin").exists()


class TestEntryAccounting:
    async def test_malformed_and_unknown_entries(self, expander, tracker, tmp_path):
        document = {
            "files": {
                "broken": {"type": "file"},
                "shortcut": {"type": "link", "target": "x"},
            }
        }

        count = await expand_and_wait(expander, document, tmp_path)

        assert count == 1
        assert tracker.total == tracker.completed == tracker.failed == 1

    async def test_unsafe_path_is_rejected(
        self, expander, tracker, manifest_server, tmp_path
    ):
        url = manifest_server.add("/evil", b"evil")
        document = {"files": {"../escape.txt": file_entry(url, b"evil")}}

        await expand_and_wait(expander, document, tmp_path / "root")

        assert tracker.failed == 1
        assert manifest_server.total_hits == 0
        assert not (tmp_path / "escape.txt").exists()

    async def test_nul_byte_directory_is_counted_as_failure(
        self, expander, tracker, tmp_path, monkeypatch
    ):
        submitted = []
        monkeypatch.setattr(expander.pool, "submit", submitted.append)

        await expander.expand({"files": {"bad\x00dir": {"type": "directory"}}}, tmp_path)

        assert submitted == []
        assert tracker.total == tracker.completed == tracker.failed == 1

    async def test_unexpected_mkdir_error_is_counted(
        self, expander, tracker, tmp_path, monkeypatch
    ):
        def broken_create_dir(path):
            raise ValueError("cannot create")

        monkeypatch.setattr(
            "manifest_sync.core.expander.create_dir", broken_create_dir
        )

        await expand_and_wait(
            expander, {"files": {"new": {"type": "directory"}}}, tmp_path
        )

        assert tracker.total == tracker.completed == tracker.failed == 1
        assert expander.stats.failed_entries == ["new"]

    async def test_empty_tree(self, expander, tracker, tmp_path):
        assert await expand_and_wait(expander, {"files": {}}, tmp_path) == 0
        assert tracker.total == 0

    async def test_document_without_files(self, expander, tmp_path):
        with pytest.raises(ManifestError):
            await expander.expand({"other": 1}, tmp_path)

    async def test_mixed_tree_counts_every_entry(
        self, expander, tracker, manifest_server, tmp_path
    ):
        a, b = b"alpha", b"beta"
        document = {
            "files": {
                "dir": {"type": "directory"},
                "dir/a": file_entry(manifest_server.add("/a", a), a),
                "dir/b": file_entry(manifest_server.add("/b", b), b),
                "dir/c": file_entry(manifest_server.url("/c"), b"c"),
            }
        }

        await expand_and_wait(expander, document, tmp_path)

        assert tracker.total == tracker.completed == 4
        assert tracker.failed == 1
        assert (tmp_path / "dir" / "a").read_bytes() == a
