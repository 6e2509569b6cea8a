"""
Fetch adapters：把 Zeplin API 回應轉成管線使用的紀錄

只做資料轉換，不做合併。API 回傳 snake_case，這裡統一轉成 camelCase
（與 metadata.json 相同）。client 是同步 requests，透過 asyncio.to_thread
讓多個畫面的請求可以重疊進行。
"""

import asyncio
import re
from typing import Iterable, Optional

from .naming import format_density

_SNAKE_RE = re.compile(r"_([a-z0-9])")


def camelize(key: str) -> str:
    return _SNAKE_RE.sub(lambda m: m.group(1).upper(), key)


def camelize_keys(value):
    """遞迴把 dict key 轉成 camelCase（list 內的 dict 也處理）."""
    if isinstance(value, dict):
        return {camelize(k): camelize_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [camelize_keys(v) for v in value]
    return value


# ─── project / screens ──────────────────────────────────────────────────────

def project_from_payload(payload: dict) -> dict:
    return {
        "id": payload.get("id"),
        "name": payload.get("name"),
        "screenCount": payload.get("number_of_screens", payload.get("numberOfScreens", 0)) or 0,
    }


def screen_from_payload(payload: dict) -> dict:
    return {"id": payload.get("id"), "name": payload.get("name")}


async def fetch_project(client, project_id: str) -> dict:
    payload = await asyncio.to_thread(client.get_project, project_id)
    return project_from_payload(payload)


async def fetch_screens_page(client, project_id: str, offset: int, limit: int) -> list:
    payload = await asyncio.to_thread(client.list_screens, project_id, offset, limit)
    return [screen_from_payload(s) for s in payload]


async def fetch_screen_version(client, project_id: str, screen_id: str) -> dict:
    return await asyncio.to_thread(client.get_latest_screen_version, project_id, screen_id)


# ─── screen version → layers / assets / snapshot ────────────────────────────

def layers_from_version(version: dict, screen: dict) -> list:
    """回傳該畫面的頂層圖層（欄位完整、camelCase），各附上 ``screenId``."""
    layers = []
    for raw in version.get("layers") or []:
        layer = camelize_keys(raw)
        layer["screenId"] = screen["id"]
        layers.append(layer)
    return layers


def assets_from_version(
    version: dict,
    screen: dict,
    formats: Iterable[str],
    densities: Iterable[str],
) -> list:
    """每個 (format, density) 組合一列，只保留 allow-list 內的變體."""
    formats = set(formats)
    densities = {format_density(d) for d in densities}
    variants = []
    for raw in version.get("assets") or []:
        for content in raw.get("contents") or []:
            if content.get("format") not in formats:
                continue
            if format_density(content.get("density")) not in densities:
                continue
            variants.append({
                "screenId": screen["id"],
                "screenName": screen["name"],
                "displayName": raw.get("display_name"),
                "layerSourceId": raw.get("layer_source_id"),
                "layerName": raw.get("layer_name"),
                "url": content.get("url"),
                "format": content.get("format"),
                "density": content.get("density"),
            })
    return variants


def snapshot_from_version(version: dict, screen: dict) -> Optional[dict]:
    url = (version.get("image") or {}).get("original_url")
    if not url:
        return None
    return {"screenId": screen["id"], "screenName": screen["name"], "url": url}
