"""
Config 圖層解析

每個畫面可放一個名為 ``Config box`` 的文字圖層，內容是寬鬆 JSON：
設計工具會把雙引號換成彎引號、自動斷行，解析前先正規化。
"""

import json
from typing import Optional

from .activity_log import ActivityLog
from .metadata import MetadataTree, iter_layers

CONFIG_LAYER_NAME = "Config box"

_QUOTE_MAP = {"“": '"', "”": '"'}


def normalize_config_text(text: str) -> str:
    for ch in ("\r", "\n"):
        text = text.replace(ch, "")
    for typographic, plain in _QUOTE_MAP.items():
        text = text.replace(typographic, plain)
    return text


def find_config_layer(screen: dict) -> Optional[dict]:
    return next(
        (layer for layer in iter_layers(screen["layers"]) if layer.get("name") == CONFIG_LAYER_NAME),
        None,
    )


def extract_config(screen: dict, log: ActivityLog) -> Optional[dict]:
    """解析單一畫面的 config；失敗只寫 log，不拋例外."""
    layer = find_config_layer(screen)
    if layer is None:
        log.error(f"Unable to find config layer for screen {screen['name']}", screen=screen["name"])
        return None
    try:
        config = json.loads(normalize_config_text(layer.get("content") or ""))
    except json.JSONDecodeError as e:
        log.error(f"Error parsing JSON for screen {screen['name']}", screen=screen["name"], detail=e)
        return None
    screen["config"] = config
    return config


def extract_all_configs(tree: MetadataTree, log: Optional[ActivityLog] = None) -> int:
    """對整棵樹跑一次 config 解析，回傳成功解析的畫面數."""
    log = log if log is not None else tree.log
    parsed = 0
    for screen in tree.screens:
        if extract_config(screen, log) is not None:
            parsed += 1
    return parsed
