"""
Bounded Download Runner

以 asyncio.Semaphore 限制同時進行的下載數（預設 20），超過上限的工作依輸入
順序排隊。每個 asset 下載完成後解碼取得實際尺寸，交給 Dimension Validator。
單一下載失敗只寫進 Activity Log，不會中斷其他下載。
"""

import asyncio
import functools
import io
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import aiofiles
import aiofiles.os
import aiohttp
from PIL import Image

from .activity_log import ActivityLog
from .dimensions import record_actual_size
from .metadata import MetadataTree
from .naming import screen_dir_name

DOWNLOAD_CONCURRENCY = 20
RASTER_FORMATS = {"png", "jpg", "jpeg", "webp"}

KIND_ASSET = "asset"
KIND_SNAPSHOT = "snapshot"
SNAPSHOT_DIR = "_snapshot"
SNAPSHOT_FILENAME = "snapshot.png"


class AssetFetchError(Exception):
    """下載失敗，帶有失敗的 URL."""

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        self.reason = reason
        super().__init__(f"{url}: {reason}" if reason else url)


@dataclass
class DownloadJob:
    screen_name: str
    filename: str
    url: str
    kind: str = KIND_ASSET
    format: Optional[str] = None

    @classmethod
    def from_asset(cls, asset: dict) -> "DownloadJob":
        return cls(
            screen_name=asset["screenName"],
            filename=asset["filename"],
            url=asset["url"],
            kind=KIND_ASSET,
            format=asset.get("format"),
        )

    @classmethod
    def from_snapshot(cls, snapshot: dict) -> "DownloadJob":
        return cls(
            screen_name=snapshot["screenName"],
            filename=SNAPSHOT_FILENAME,
            url=snapshot["url"],
            kind=KIND_SNAPSHOT,
            format="png",
        )


async def fetch_bytes(session: aiohttp.ClientSession, url: str) -> bytes:
    try:
        async with session.get(url) as resp:
            resp.raise_for_status()
            return await resp.read()
    except aiohttp.ClientResponseError as e:
        raise AssetFetchError(url, f"HTTP {e.status}") from e
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise AssetFetchError(url, str(e) or type(e).__name__) from e


def decode_image_size(data: bytes) -> tuple[int, int]:
    """回傳 (width, height)；不是有效圖片時由 Pillow 拋出 OSError."""
    with Image.open(io.BytesIO(data)) as image:
        return image.size


def job_folder(output_root: str, job: DownloadJob) -> str:
    """asset 放在畫面目錄；snapshot 另放子目錄，避免和 [id:snapshot] 之類的 asset 撞名."""
    folder = os.path.join(output_root, screen_dir_name(job.screen_name))
    if job.kind == KIND_SNAPSHOT:
        folder = os.path.join(folder, SNAPSHOT_DIR)
    return folder


async def _write_file(folder: str, filename: str, data: bytes) -> str:
    await aiofiles.os.makedirs(folder, exist_ok=True)
    path = os.path.join(folder, filename)
    async with aiofiles.open(path, "wb") as f:
        await f.write(data)
    return path


async def download_one(
    job: DownloadJob,
    output_root: str,
    tree: MetadataTree,
    log: ActivityLog,
    fetch: Callable[[str], Awaitable[bytes]],
    decode: Callable[[bytes], tuple] = decode_image_size,
) -> bool:
    """下載並寫檔單一工作；asset 另做解碼與尺寸檢查. 回傳下載是否成功."""
    try:
        data = await fetch(job.url)
    except AssetFetchError as e:
        log.error(f"Error downloading {job.filename}", screen=job.screen_name, detail=e.url)
        return False
    except Exception as e:
        log.error(f"Error downloading {job.filename}", screen=job.screen_name, detail=f"{job.url} ({e})")
        return False

    try:
        await _write_file(job_folder(output_root, job), job.filename, data)
    except OSError as e:
        log.error(f"Error writing {job.filename}", screen=job.screen_name, detail=e)
        return False

    if job.kind != KIND_ASSET or (job.format or "").lower() not in RASTER_FORMATS:
        return True

    try:
        width, height = decode(data)
    except Exception as e:
        log.error(f"Error reading image {job.filename}", screen=job.screen_name, detail=e)
        return True

    record_actual_size(tree, log, job.screen_name, job.filename, width, height)
    return True


async def run_downloads(
    jobs: list,
    output_root: str,
    tree: MetadataTree,
    log: ActivityLog,
    *,
    fetch: Optional[Callable[[str], Awaitable[bytes]]] = None,
    decode: Callable[[bytes], tuple] = decode_image_size,
    progress: Optional[Callable[[DownloadJob, bool], None]] = None,
    limit: int = DOWNLOAD_CONCURRENCY,
) -> dict:
    """並行下載所有工作（上限 ``limit``），回傳 {"ok": n, "failed": n}.

    ``fetch`` 未指定時使用 aiohttp session；測試可注入假的 fetch。
    """
    semaphore = asyncio.Semaphore(limit)
    summary = {"ok": 0, "failed": 0}

    async def run_one(job: DownloadJob, fetch_fn) -> None:
        async with semaphore:
            ok = await download_one(job, output_root, tree, log, fetch_fn, decode)
        summary["ok" if ok else "failed"] += 1
        if progress is not None:
            progress(job, ok)

    if not jobs:
        return summary

    if fetch is not None:
        await asyncio.gather(*(run_one(job, fetch) for job in jobs))
        return summary

    async with aiohttp.ClientSession() as session:
        fetch_fn = functools.partial(fetch_bytes, session)
        await asyncio.gather(*(run_one(job, fetch_fn) for job in jobs))
    return summary
