"""
Metadata Tree：project → screens → layers → assets

把各自抓取、只靠 id 鬆散關聯的三組資料合併成單一巢狀樹：
  - layer 依 ``screenId`` 掛到 screen
  - asset 依 ``layerSourceId == layer.sourceId`` 掛到 layer（不是 layer.id）
對不到上層的 layer / asset 不會默默丟掉，而是寫進 Activity Log 後略過。
處理順序即抓取順序，不做排序。
"""

import json
import os
from typing import Iterator, Optional

from .activity_log import ActivityLog, UNKNOWN_SCREEN
from .naming import (
    FILENAME_SCHEME_DISPLAY_NAME,
    FILENAME_SCHEME_TAGS,
    FILENAME_SCHEMES,
    display_name_filename,
    parse_display_name_params,
    resolve_filename,
)

SOURCE = "zeplin"


# ─── record factories ───────────────────────────────────────────────────────

def new_project(project_id: str, name: Optional[str] = None, screen_count: int = 0) -> dict:
    return {"id": project_id, "name": name, "screenCount": screen_count}


def new_screen(screen: dict) -> dict:
    return {
        "id": screen.get("id"),
        "name": screen.get("name"),
        "config": None,
        "layers": [],
    }


def new_rect(rect: Optional[dict]) -> dict:
    rect = rect or {}
    return {
        "width": rect.get("width"),
        "height": rect.get("height"),
        "x": rect.get("x", 0),
        "y": rect.get("y", 0),
    }


def new_layer(layer: dict) -> dict:
    """依 layer schema 建新節點；巢狀子圖層遞迴套用同一 schema.

    schema 以外的欄位（fills、borders、rect.absolute…）不會帶進樹。
    """
    node = {
        "id": layer.get("id"),
        "sourceId": layer.get("sourceId"),
        "name": layer.get("name"),
        "type": layer.get("type"),
        "rect": new_rect(layer.get("rect")),
        "content": layer.get("content"),
        "assets": [],
    }
    children = layer.get("layers")
    if children:
        node["layers"] = [new_layer(child) for child in children]
    return node


def new_asset(asset: dict, filename: str, params: Optional[dict] = None) -> dict:
    node = {
        "displayName": asset.get("displayName"),
        "filename": filename,
        "format": asset.get("format"),
        "density": asset.get("density"),
    }
    if params is not None:
        node["params"] = params
    node["actualSize"] = {"width": None, "height": None}
    return node


def iter_layers(layers: list) -> Iterator[dict]:
    """深度優先 pre-order 走訪所有圖層（含巢狀）."""
    for layer in layers:
        yield layer
        yield from iter_layers(layer.get("layers") or [])


# ─── tree builder ───────────────────────────────────────────────────────────

class MetadataTree:
    """單次 run 的 metadata 樹；每個 batch 依 screens → layers → assets 順序擴充."""

    def __init__(
        self,
        project: dict,
        log: Optional[ActivityLog] = None,
        filename_scheme: str = FILENAME_SCHEME_TAGS,
    ):
        if filename_scheme not in FILENAME_SCHEMES:
            raise ValueError(f"unknown filename scheme: {filename_scheme}")
        self.project = project
        self.log = log if log is not None else ActivityLog()
        self.filename_scheme = filename_scheme
        self.screens: list[dict] = []

    # ─── lookups ───

    def find_screen_by_id(self, screen_id) -> Optional[dict]:
        return next((s for s in self.screens if s["id"] == screen_id), None)

    def find_screen_by_name(self, name: str) -> Optional[dict]:
        return next((s for s in self.screens if s["name"] == name), None)

    def find_layer_by_source_id(self, screen: dict, source_id) -> tuple[int, Optional[dict]]:
        """回傳 (pre-order 位置, layer)；找不到時為 (-1, None)."""
        for index, layer in enumerate(iter_layers(screen["layers"])):
            if layer.get("sourceId") == source_id:
                return index, layer
        return -1, None

    # ─── ingestion ───

    def ingest_screens(self, screens: list) -> list:
        """每個 screen 建一個節點；不去重（重複 id 視為呼叫端錯誤）."""
        added = [new_screen(screen) for screen in screens]
        self.screens.extend(added)
        return added

    def ingest_layers(self, layers_by_screen: list) -> int:
        merged = 0
        for layers in layers_by_screen:
            for layer in layers:
                screen = self.find_screen_by_id(layer.get("screenId"))
                if screen is None:
                    self.log.error(
                        f"Unable to identify screen for layer {layer.get('name')}",
                        screen=UNKNOWN_SCREEN,
                    )
                    continue
                screen["layers"].append(new_layer(layer))
                merged += 1
        return merged

    def ingest_assets(self, assets_by_screen: list) -> list:
        """合併 asset 變體並決定檔名；回傳成功掛上樹的變體（附 filename）."""
        merged = []
        for assets in assets_by_screen:
            for asset in assets:
                display_name = asset.get("displayName")
                screen = self.find_screen_by_id(asset.get("screenId"))
                if screen is None:
                    self.log.error(
                        f"Unable to identify screen for asset {display_name}",
                        screen=asset.get("screenName") or UNKNOWN_SCREEN,
                    )
                    continue
                layer_index, layer = self.find_layer_by_source_id(screen, asset.get("layerSourceId"))
                if layer is None:
                    self.log.error(
                        f"Unable to identify layer for asset {display_name}",
                        screen=screen["name"],
                    )
                    continue
                params = parse_display_name_params(display_name or "")
                filename = self._filename_for(asset, params, layer_index)
                layer["assets"].append(new_asset(asset, filename, params))
                merged.append({**asset, "screenName": screen["name"], "filename": filename})
        return merged

    def _filename_for(self, asset: dict, params: Optional[dict], layer_index: int) -> str:
        if self.filename_scheme == FILENAME_SCHEME_DISPLAY_NAME:
            return display_name_filename(asset.get("displayName") or "", asset.get("density"), asset.get("format"))
        return resolve_filename(params, asset.get("format"), layer_index, asset.get("density"))

    # ─── output ───

    def to_dict(self) -> dict:
        return {
            "source": SOURCE,
            "project": {"id": self.project.get("id"), "name": self.project.get("name")},
            "screens": self.screens,
        }

    def stats(self) -> dict:
        layers = [layer for screen in self.screens for layer in iter_layers(screen["layers"])]
        return {
            "screens": len(self.screens),
            "layers": len(layers),
            "assets": sum(len(layer["assets"]) for layer in layers),
        }


def save_metadata(tree: MetadataTree, folder: str) -> str:
    """寫出 metadata.json，回傳路徑."""
    path = os.path.join(folder, "metadata.json")
    os.makedirs(folder, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(tree.to_dict(), f, indent=2, ensure_ascii=False)
    return path
