"""
zeplin-sync：Zeplin 專案同步（Python 管線）

抓取 screens / layers / assets，合併成單一 metadata 樹並下載資產檔案。
"""

__version__ = "0.3.0"

from .activity_log import ActivityLog, UNKNOWN_SCREEN
from .naming import (
    parse_display_name_params,
    resolve_filename,
    display_name_filename,
    sanitize_name,
)
from .metadata import MetadataTree, save_metadata
from .config_layer import extract_config, extract_all_configs
from .dimensions import record_actual_size, SIZE_TOLERANCE
from .downloader import DownloadJob, AssetFetchError, run_downloads
from .zeplin_client import ZeplinAPIClient, ZeplinAPIError
from .pipeline import SyncOptions, SyncContext, SyncError, run_sync, sync_project, save_outputs
from .config import load_config, validate_config

__all__ = [
    "__version__",
    "ActivityLog",
    "UNKNOWN_SCREEN",
    "parse_display_name_params",
    "resolve_filename",
    "display_name_filename",
    "sanitize_name",
    "MetadataTree",
    "save_metadata",
    "extract_config",
    "extract_all_configs",
    "record_actual_size",
    "SIZE_TOLERANCE",
    "DownloadJob",
    "AssetFetchError",
    "run_downloads",
    "ZeplinAPIClient",
    "ZeplinAPIError",
    "SyncOptions",
    "SyncContext",
    "SyncError",
    "run_sync",
    "sync_project",
    "save_outputs",
    "load_config",
    "validate_config",
]
