"""
Pagination Driver：整個 sync run 的流程

  1. 取得 project（含畫面總數）
  2. 以 offset 分批（每批 30）抓畫面 → 建樹（screens → layers → assets）→ 下載
  3. 全部批次結束後解析各畫面的 Config 圖層
  4. 由 save_outputs 寫出 metadata.json 與 log

run 的所有狀態都在 SyncContext 內，run 結束即丟棄。
"""

import asyncio
import math
import os
import shutil
from dataclasses import dataclass, field
from typing import Callable, Optional

from tqdm.asyncio import tqdm

from .activity_log import ActivityLog
from .config_layer import extract_all_configs
from .downloader import (
    DOWNLOAD_CONCURRENCY,
    DownloadJob,
    decode_image_size,
    run_downloads,
)
from .fetchers import (
    assets_from_version,
    fetch_project,
    fetch_screen_version,
    fetch_screens_page,
    layers_from_version,
    snapshot_from_version,
)
from .metadata import MetadataTree, save_metadata
from .naming import FILENAME_SCHEME_TAGS, sanitize_name
from .zeplin_client import ZeplinAPIError

DEFAULT_FORMATS = ["png", "jpg", "webp", "svg", "pdf"]
DEFAULT_DENSITIES = ["1", "1.5", "2", "3", "4"]
SCREEN_BATCH_SIZE = 30


class SyncError(Exception):
    """整個 run 無法繼續（API 連不上、輸出目錄無法建立）."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


@dataclass
class SyncOptions:
    project_id: str
    screen_id: Optional[str] = None
    metadata_only: bool = False
    formats: list = field(default_factory=lambda: list(DEFAULT_FORMATS))
    densities: list = field(default_factory=lambda: list(DEFAULT_DENSITIES))
    output_dir: Optional[str] = None
    batch_size: int = SCREEN_BATCH_SIZE
    concurrency: int = DOWNLOAD_CONCURRENCY
    filename_scheme: str = FILENAME_SCHEME_TAGS
    snapshots: bool = False
    clean: bool = False
    show_progress: bool = True


@dataclass
class SyncContext:
    options: SyncOptions
    project: dict
    tree: MetadataTree
    log: ActivityLog
    output_dir: str
    batches: int = 0
    downloads: dict = field(default_factory=lambda: {"ok": 0, "failed": 0})


def default_output_dir(project_name: str) -> str:
    return f"{sanitize_name(project_name)}__assets"


def prepare_output_dir(path: str, clean: bool = False) -> str:
    """建立輸出目錄；``clean`` 時先清空. 失敗視為整個 run 失敗."""
    try:
        if clean and os.path.isdir(path):
            shutil.rmtree(path)
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise SyncError(f"Unable to create output directory '{path}': {e}") from e
    return path


async def _fetch_versions(client, project_id: str, screens: list, log: ActivityLog) -> list:
    """並行取得各畫面最新版本；單一畫面失敗寫 log 並回傳 None."""

    async def fetch_one(screen: dict):
        try:
            return await fetch_screen_version(client, project_id, screen["id"])
        except ZeplinAPIError as e:
            log.error(f"Error fetching latest version of screen {screen['name']}", screen=screen["name"], detail=e)
            return None

    versions = await asyncio.gather(*(fetch_one(screen) for screen in screens))
    return list(zip(screens, versions))


async def run_batch(
    ctx: SyncContext,
    client,
    screens: list,
    *,
    fetch=None,
    decode=decode_image_size,
    progress_factory: Optional[Callable[[int], Callable]] = None,
) -> None:
    """單一批次：建樹（嚴格依 screens → layers → assets 順序）後下載."""
    if not screens:
        return
    options = ctx.options
    ctx.tree.ingest_screens(screens)

    fetched = [(s, v) for s, v in await _fetch_versions(client, options.project_id, screens, ctx.log) if v is not None]
    ctx.tree.ingest_layers([layers_from_version(version, screen) for screen, version in fetched])
    assets = ctx.tree.ingest_assets([
        assets_from_version(version, screen, options.formats, options.densities)
        for screen, version in fetched
    ])

    if options.metadata_only:
        return

    jobs = [DownloadJob.from_asset(asset) for asset in assets]
    if options.snapshots:
        for screen, version in fetched:
            snapshot = snapshot_from_version(version, screen)
            if snapshot:
                jobs.append(DownloadJob.from_snapshot(snapshot))
    if not jobs:
        return

    pbar = None
    if progress_factory is not None:
        progress = progress_factory(len(jobs))
    elif options.show_progress:
        pbar = tqdm(total=len(jobs), desc="Downloading project assets", unit="files")

        def progress(job: DownloadJob, ok: bool) -> None:
            pbar.update(1)
    else:
        progress = None

    try:
        summary = await run_downloads(
            jobs,
            ctx.output_dir,
            ctx.tree,
            ctx.log,
            fetch=fetch,
            decode=decode,
            progress=progress,
            limit=options.concurrency,
        )
    finally:
        if pbar is not None:
            pbar.close()
    ctx.downloads["ok"] += summary["ok"]
    ctx.downloads["failed"] += summary["failed"]


async def run_sync(
    client,
    options: SyncOptions,
    *,
    fetch=None,
    decode=decode_image_size,
    progress_factory: Optional[Callable[[int], Callable]] = None,
    log: Optional[ActivityLog] = None,
) -> SyncContext:
    """執行完整 sync，回傳 SyncContext（尚未寫檔，見 save_outputs）."""
    log = log if log is not None else ActivityLog()
    try:
        project = await fetch_project(client, options.project_id)
    except ZeplinAPIError as e:
        raise SyncError(f"Unable to fetch project {options.project_id}: {e}", status=e.status) from e
    project["id"] = project.get("id") or options.project_id
    print(f"   ✅ Project: {project['name']} ({project['screenCount']} screens)")

    output_dir = options.output_dir or default_output_dir(project.get("name") or options.project_id)
    prepare_output_dir(output_dir, clean=options.clean)

    tree = MetadataTree(project, log, filename_scheme=options.filename_scheme)
    ctx = SyncContext(options=options, project=project, tree=tree, log=log, output_dir=output_dir)

    total = project["screenCount"]
    batch_size = max(1, options.batch_size)
    batch_count = math.ceil(total / batch_size)
    offset = 0
    # 畫面篩選在抓完整批之後才套用；offset 仍以完整批次前進
    while offset < total:
        ctx.batches += 1
        print(f"   [{ctx.batches}/{batch_count}] Screens {offset + 1}-{min(offset + batch_size, total)}")
        try:
            screens = await fetch_screens_page(client, options.project_id, offset, batch_size)
        except ZeplinAPIError as e:
            raise SyncError(f"Unable to list screens at offset {offset}: {e}", status=e.status) from e
        if options.screen_id:
            screens = [s for s in screens if s["id"] == options.screen_id][:1]
        await run_batch(ctx, client, screens, fetch=fetch, decode=decode, progress_factory=progress_factory)
        offset = min(offset + batch_size, total)

    extract_all_configs(tree, log)
    return ctx


def sync_project(client, options: SyncOptions, **kwargs) -> SyncContext:
    """run_sync 的同步版本."""
    return asyncio.run(run_sync(client, options, **kwargs))


def save_outputs(ctx: SyncContext) -> dict:
    """寫出 metadata.json、log.json、log.txt."""
    metadata_path = save_metadata(ctx.tree, ctx.output_dir)
    log_json, log_txt = ctx.log.save(ctx.output_dir)
    return {"metadata": metadata_path, "log": log_json, "logText": log_txt}
