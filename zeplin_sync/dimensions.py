"""Dimension Validator：比對下載後的實際像素尺寸與圖層宣告的 rect."""

from .activity_log import ActivityLog
from .metadata import MetadataTree, iter_layers

# 寬或高差距超過此值（絕對單位）才發出警告
SIZE_TOLERANCE = 3


def exceeds_tolerance(rect: dict, width: int, height: int, tolerance: int = SIZE_TOLERANCE) -> bool:
    rect_width = rect.get("width") or 0
    rect_height = rect.get("height") or 0
    return abs(rect_width - width) > tolerance or abs(rect_height - height) > tolerance


def record_actual_size(
    tree: MetadataTree,
    log: ActivityLog,
    screen_name: str,
    filename: str,
    width: int,
    height: int,
) -> bool:
    """寫入 asset 的 actualSize 並檢查尺寸；任一查找失敗時寫 log 並回傳 False.

    尺寸不符只是警告，不影響下載是否成功。
    """
    screen = tree.find_screen_by_name(screen_name)
    if screen is None:
        log.error(f"Unable to identify screen for asset with filename {filename}", screen=screen_name)
        return False

    layer = next(
        (candidate for candidate in iter_layers(screen["layers"]) if any(a["filename"] == filename for a in candidate["assets"])),
        None,
    )
    if layer is None:
        log.error(f"Unable to identify layer for asset with filename {filename}", screen=screen_name)
        return False

    asset = next((a for a in layer["assets"] if a["filename"] == filename), None)
    if asset is None:
        log.error(f"Unable to identify asset for filename {filename}", screen=screen_name)
        return False

    asset["actualSize"] = {"width": width, "height": height}

    rect = layer["rect"]
    if exceeds_tolerance(rect, width, height):
        log.warning(
            f"Rect dimensions for {filename} do not match actual file dimensions. "
            f"Rect: {rect.get('width')}x{rect.get('height')} Actual: {width}x{height}",
            screen=screen_name,
        )
    return True
