"""設定檔載入與基本驗證（zeplin-sync.config.json + .env）."""

import json
import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .naming import FILENAME_SCHEMES

DEFAULT_CONFIG_PATH = "zeplin-sync.config.json"
TOKEN_ENV_VAR = "PERSONAL_ACCESS_TOKEN"

# 已知有效的頂層欄位
_KNOWN_TOP_KEYS = {"zeplin", "export"}

# 各區塊已知欄位（用於拼字提示）
_KNOWN_SECTION_KEYS = {
    "zeplin": {"personalAccessToken", "projectId"},
    "export": {"outputDir", "formats", "densities", "filenameScheme", "snapshots", "concurrency", "batchSize"},
}

_KNOWN_FORMATS = {"png", "jpg", "webp", "svg", "pdf"}


def _warn(msg: str) -> None:
    print(f"   ⚠️  [config] {msg}")


def validate_config(cfg: dict) -> None:
    """對 config 做基本欄位驗證，印出警告但不拋例外。"""
    if not cfg:
        return

    for key in cfg:
        if key not in _KNOWN_TOP_KEYS:
            known = ", ".join(sorted(_KNOWN_TOP_KEYS))
            _warn(f"未知頂層欄位 '{key}'（已知欄位：{known}）")

    for section, known_keys in _KNOWN_SECTION_KEYS.items():
        section_cfg = cfg.get(section, {})
        if not isinstance(section_cfg, dict):
            _warn(f"'{section}' 應為 JSON 物件，目前是 {type(section_cfg).__name__}")
            continue
        for key in section_cfg:
            if key not in known_keys:
                known = ", ".join(sorted(known_keys))
                _warn(f"[{section}] 未知欄位 '{key}'（已知欄位：{known}）")

    export = cfg.get("export", {})
    if not isinstance(export, dict):
        return

    for key in ("formats", "densities"):
        val = export.get(key)
        if val is not None and not isinstance(val, list):
            _warn(f"export.{key} 應為陣列，目前是 {type(val).__name__}")

    formats = export.get("formats")
    if isinstance(formats, list):
        unknown = [f for f in formats if f not in _KNOWN_FORMATS]
        if unknown:
            valid = ", ".join(sorted(_KNOWN_FORMATS))
            _warn(f"export.formats 含未知格式 {unknown}（{valid}）")

    densities = export.get("densities")
    if isinstance(densities, list):
        bad = [d for d in densities if not _is_density(d)]
        if bad:
            _warn(f"export.densities 含非數字的值 {bad}，將略過")

    scheme = export.get("filenameScheme")
    if scheme and scheme not in FILENAME_SCHEMES:
        valid = ", ".join(FILENAME_SCHEMES)
        _warn(f"export.filenameScheme '{scheme}' 不在已知值中（{valid}）")

    for key in ("concurrency", "batchSize"):
        val = export.get(key)
        if val is not None and not _is_positive_int(val):
            _warn(f"export.{key} 應為正整數，目前是 {val!r}")

    if "outputDir" in export and not isinstance(export["outputDir"], str):
        _warn(f"export.outputDir 應為字串，目前是 {export['outputDir']!r}")
    if "snapshots" in export and not isinstance(export["snapshots"], bool):
        _warn(f"export.snapshots 應為 true/false，目前是 {export['snapshots']!r}")


def _is_positive_int(val) -> bool:
    return isinstance(val, int) and not isinstance(val, bool) and val >= 1


def _is_density(val) -> bool:
    if isinstance(val, bool):
        return False
    try:
        float(val)
    except (TypeError, ValueError):
        return False
    return True


def config_section(cfg: dict, section: str) -> dict:
    """取得區塊；不是 JSON 物件時（已由 validate_config 警告）視為空區塊."""
    section_cfg = cfg.get(section, {})
    return section_cfg if isinstance(section_cfg, dict) else {}


def export_settings(cfg: dict) -> dict:
    """export 區塊中型別正確的欄位；無效值略過，由呼叫端套用預設值."""
    export = config_section(cfg, "export")
    settings = {}
    if isinstance(export.get("formats"), list):
        settings["formats"] = [str(v) for v in export["formats"]]
    if isinstance(export.get("densities"), list):
        settings["densities"] = [str(v) for v in export["densities"] if _is_density(v)]
    for key in ("concurrency", "batchSize"):
        if _is_positive_int(export.get(key)):
            settings[key] = export[key]
    if export.get("filenameScheme") in FILENAME_SCHEMES:
        settings["filenameScheme"] = export["filenameScheme"]
    if isinstance(export.get("outputDir"), str):
        settings["outputDir"] = export["outputDir"]
    if isinstance(export.get("snapshots"), bool):
        settings["snapshots"] = export["snapshots"]
    return settings


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """載入 JSON 設定檔，不存在則回傳空 dict；存在則做基本驗證。"""
    path = Path(config_path)
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        cfg: Any = json.load(f)
    if not isinstance(cfg, dict):
        print(f"   ⚠️  [config] '{config_path}' 格式錯誤，應為 JSON 物件，回傳空設定。")
        return {}
    validate_config(cfg)
    return cfg


def load_env(env_path: str = ".env") -> None:
    """載入 .env（不覆寫已存在的環境變數）."""
    load_dotenv(env_path, override=False)


def resolve_token(config: dict) -> Optional[str]:
    """Token 來源：config 的 zeplin.personalAccessToken → 環境變數."""
    token = config_section(config, "zeplin").get("personalAccessToken")
    if not isinstance(token, str):
        token = None
    return token or os.environ.get(TOKEN_ENV_VAR)
