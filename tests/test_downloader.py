"""
Bounded Download Runner 測試
用假的 fetch coroutine 取代 aiohttp，不需要網路：並行上限、失敗隔離、
每單位呼叫一次 progress、解碼後寫入 actualSize。
"""
import asyncio
import io
import os
from unittest.mock import MagicMock

import pytest
from PIL import Image

from zeplin_sync.activity_log import ActivityLog, LEVEL_WARNING
from zeplin_sync.downloader import (
    AssetFetchError,
    DownloadJob,
    SNAPSHOT_DIR,
    SNAPSHOT_FILENAME,
    decode_image_size,
    job_folder,
    run_downloads,
)
from zeplin_sync.metadata import MetadataTree, new_project


# ─── helpers ─────────────────────────────────────────────────────────────────

def png_bytes(width, height):
    buf = io.BytesIO()
    Image.new("RGBA", (width, height)).save(buf, format="PNG")
    return buf.getvalue()


def make_tree(asset_count=3, rect=(100, 100)):
    log = ActivityLog(echo=False)
    tree = MetadataTree(new_project("p", "Demo"), log)
    tree.ingest_screens([{"id": "s1", "name": "Home/Main"}])
    tree.ingest_layers([[
        {"screenId": "s1", "id": f"l{i}", "sourceId": f"src-{i}", "name": f"L{i}",
         "rect": {"width": rect[0], "height": rect[1], "x": 0, "y": 0}}
        for i in range(asset_count)
    ]])
    merged = tree.ingest_assets([[
        {"screenId": "s1", "screenName": "Home/Main", "displayName": f"Icon[id:icon{i}]",
         "layerSourceId": f"src-{i}", "format": "png", "density": 1,
         "url": f"https://cdn.example/icon{i}.png"}
        for i in range(asset_count)
    ]])
    return tree, log, [DownloadJob.from_asset(a) for a in merged]


def asset_nodes(tree):
    return [a for layer in tree.screens[0]["layers"] for a in layer["assets"]]


# ─── success path ────────────────────────────────────────────────────────────

class TestDownloadSuccess:
    def test_files_written_under_sanitized_screen_dir(self, tmp_path):
        tree, log, jobs = make_tree()

        async def fetch(url):
            return png_bytes(100, 100)

        summary = asyncio.run(run_downloads(jobs, str(tmp_path), tree, log, fetch=fetch))
        assert summary == {"ok": 3, "failed": 0}
        screen_dir = tmp_path / "Home-Main"
        assert sorted(p.name for p in screen_dir.iterdir()) == ["icon0.png", "icon1.png", "icon2.png"]
        assert all(a["actualSize"] == {"width": 100, "height": 100} for a in asset_nodes(tree))
        assert len(log) == 0

    def test_existing_screen_dir_is_not_an_error(self, tmp_path):
        tree, log, jobs = make_tree(1)
        (tmp_path / "Home-Main").mkdir()

        async def fetch(url):
            return png_bytes(100, 100)

        summary = asyncio.run(run_downloads(jobs, str(tmp_path), tree, log, fetch=fetch))
        assert summary["ok"] == 1

    def test_dimension_mismatch_is_warning_only(self, tmp_path):
        tree, log, jobs = make_tree(1)

        async def fetch(url):
            return png_bytes(200, 100)

        summary = asyncio.run(run_downloads(jobs, str(tmp_path), tree, log, fetch=fetch))
        assert summary == {"ok": 1, "failed": 0}
        assert log.count(LEVEL_WARNING) == 1

    def test_vector_formats_are_not_decoded(self, tmp_path):
        tree, log, _ = make_tree(1)
        job = DownloadJob("Home/Main", "icon0.svg", "https://cdn.example/icon0.svg", format="svg")
        decode = MagicMock()

        async def fetch(url):
            return b"<svg/>"

        asyncio.run(run_downloads([job], str(tmp_path), tree, log, fetch=fetch, decode=decode))
        decode.assert_not_called()
        assert (tmp_path / "Home-Main" / "icon0.svg").read_bytes() == b"<svg/>"

    def test_snapshot_written_without_validation(self, tmp_path):
        tree, log, _ = make_tree(1)
        job = DownloadJob.from_snapshot({"screenName": "Home/Main", "url": "https://cdn.example/shot.png"})
        decode = MagicMock()

        async def fetch(url):
            return png_bytes(10, 10)

        asyncio.run(run_downloads([job], str(tmp_path), tree, log, fetch=fetch, decode=decode))
        decode.assert_not_called()
        assert (tmp_path / "Home-Main" / SNAPSHOT_DIR / SNAPSHOT_FILENAME).exists()

    def test_snapshot_does_not_clobber_asset_tagged_snapshot(self, tmp_path):
        tree, log, _ = make_tree(0)
        asset = DownloadJob("Home/Main", "snapshot.png", "https://cdn.example/asset.png", format="png")
        snapshot = DownloadJob.from_snapshot({"screenName": "Home/Main", "url": "https://cdn.example/shot.png"})

        async def fetch(url):
            return url.encode()

        summary = asyncio.run(run_downloads(
            [asset, snapshot], str(tmp_path), tree, log, fetch=fetch, decode=lambda data: (1, 1)
        ))
        assert summary == {"ok": 2, "failed": 0}
        assert (tmp_path / "Home-Main" / "snapshot.png").read_bytes() == b"https://cdn.example/asset.png"
        assert (tmp_path / "Home-Main" / SNAPSHOT_DIR / SNAPSHOT_FILENAME).read_bytes() == b"https://cdn.example/shot.png"


# ─── failure isolation ───────────────────────────────────────────────────────

class TestDownloadFailures:
    def test_one_failure_does_not_affect_siblings(self, tmp_path):
        tree, log, jobs = make_tree(3)

        async def fetch(url):
            if url.endswith("icon1.png"):
                raise AssetFetchError(url, "HTTP 500")
            return png_bytes(100, 100)

        summary = asyncio.run(run_downloads(jobs, str(tmp_path), tree, log, fetch=fetch))
        assert summary == {"ok": 2, "failed": 1}
        sizes = [a["actualSize"] for a in asset_nodes(tree)]
        assert sizes[0] == {"width": 100, "height": 100}
        assert sizes[1] == {"width": None, "height": None}
        assert sizes[2] == {"width": 100, "height": 100}
        entry = log.entries("Home/Main")[0]
        assert entry["errorDetail"] == "https://cdn.example/icon1.png"

    def test_unexpected_fetch_exception_is_contained(self, tmp_path):
        tree, log, jobs = make_tree(2)

        async def fetch(url):
            if url.endswith("icon0.png"):
                raise RuntimeError("socket closed")
            return png_bytes(100, 100)

        summary = asyncio.run(run_downloads(jobs, str(tmp_path), tree, log, fetch=fetch))
        assert summary == {"ok": 1, "failed": 1}
        assert "https://cdn.example/icon0.png" in log.entries("Home/Main")[0]["errorDetail"]

    def test_decode_failure_logged_and_size_unset(self, tmp_path):
        tree, log, jobs = make_tree(1)

        async def fetch(url):
            return b"not an image"

        summary = asyncio.run(run_downloads(jobs, str(tmp_path), tree, log, fetch=fetch))
        assert summary == {"ok": 1, "failed": 0}
        assert asset_nodes(tree)[0]["actualSize"] == {"width": None, "height": None}
        assert "Error reading image icon0.png" in log.entries("Home/Main")[0]["description"]


# ─── concurrency / progress ──────────────────────────────────────────────────

class TestConcurrency:
    def test_in_flight_never_exceeds_limit(self, tmp_path):
        tree, log, jobs = make_tree(12)
        state = {"in_flight": 0, "peak": 0}

        async def fetch(url):
            state["in_flight"] += 1
            state["peak"] = max(state["peak"], state["in_flight"])
            await asyncio.sleep(0.01)
            state["in_flight"] -= 1
            return png_bytes(100, 100)

        asyncio.run(run_downloads(jobs, str(tmp_path), tree, log, fetch=fetch, limit=4))
        assert state["peak"] == 4

    def test_admission_follows_input_order(self, tmp_path):
        tree, log, jobs = make_tree(6)
        started = []

        async def fetch(url):
            started.append(url)
            await asyncio.sleep(0)
            return png_bytes(100, 100)

        asyncio.run(run_downloads(jobs, str(tmp_path), tree, log, fetch=fetch, limit=2))
        assert started == [job.url for job in jobs]

    def test_progress_called_once_per_unit(self, tmp_path):
        tree, log, jobs = make_tree(5)
        progress = MagicMock()

        async def fetch(url):
            if url.endswith("icon3.png"):
                raise AssetFetchError(url)
            return png_bytes(100, 100)

        asyncio.run(run_downloads(jobs, str(tmp_path), tree, log, fetch=fetch, progress=progress))
        assert progress.call_count == 5
        oks = [call.args[1] for call in progress.call_args_list]
        assert oks.count(False) == 1

    def test_empty_job_list(self, tmp_path):
        tree, log, _ = make_tree(0)
        assert asyncio.run(run_downloads([], str(tmp_path), tree, log)) == {"ok": 0, "failed": 0}


# ─── helpers in module ───────────────────────────────────────────────────────

def test_decode_image_size():
    assert decode_image_size(png_bytes(7, 5)) == (7, 5)


def test_decode_image_size_rejects_garbage():
    with pytest.raises(OSError):
        decode_image_size(b"garbage")


def test_job_folder_separates_snapshots():
    asset = DownloadJob("Home/Main", "snapshot.png", "u")
    snapshot = DownloadJob.from_snapshot({"screenName": "Home/Main", "url": "u"})
    assert job_folder("out", asset) == os.path.join("out", "Home-Main")
    assert job_folder("out", snapshot) == os.path.join("out", "Home-Main", SNAPSHOT_DIR)


def test_asset_fetch_error_keeps_url():
    err = AssetFetchError("https://cdn/a.png", "HTTP 404")
    assert err.url == "https://cdn/a.png"
    assert "HTTP 404" in str(err)
