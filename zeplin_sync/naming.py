"""
命名解析：資產輸出檔名與畫面目錄名

display name 可帶方括號標籤，例如 ``Icon[id:home][scale:2x]``：
  - ``key:value`` → 字串參數
  - 無冒號的片段 → 布林旗標（True）
有 ``id`` 標籤時檔名為 ``<id>.<format>``，否則退回 ``asset<N>.<format>``。
"""

import re
from typing import Optional

FILENAME_SCHEME_TAGS = "tags"
FILENAME_SCHEME_DISPLAY_NAME = "display-name"
FILENAME_SCHEMES = (FILENAME_SCHEME_TAGS, FILENAME_SCHEME_DISPLAY_NAME)

_TAG_RE = re.compile(r"\[[^\[\]]*\]")
_SPLIT_RE = re.compile(r"[\[\]]")
_PATH_SEPARATORS = ("/", "\\")


def sanitize_name(name: str) -> str:
    """路徑分隔符號換成連字號，供目錄與檔名使用."""
    for sep in _PATH_SEPARATORS:
        name = name.replace(sep, "-")
    return name


def format_density(value) -> str:
    """密度轉為標籤字串：2.0 → "2"、1.5 → "1.5"、"3" → "3"."""
    try:
        return f"{float(value):g}"
    except (TypeError, ValueError):
        return str(value)


def parse_display_name_params(display_name: str) -> Optional[dict]:
    """解析 display name 中的方括號標籤；沒有任何標籤時回傳 None."""
    if not display_name or not _TAG_RE.search(display_name):
        return None
    params: dict = {}
    # 第一段（標籤前的名稱）不算參數
    _, _, rest = display_name.partition("[")
    for fragment in _SPLIT_RE.split("[" + rest):
        fragment = fragment.strip()
        if not fragment:
            continue
        if ":" in fragment:
            key, value = fragment.split(":", 1)
            params[key] = value
        else:
            params[fragment] = True
    return params


def resolve_filename(params: Optional[dict], format: str, layer_index: int, density=None) -> str:
    """依標籤參數決定輸出檔名.

    ``density`` 為 None 或 1 時不加後綴；其他密度加上 ``@<density>x``，
    避免同一圖層下不同密度的變體寫到同一個檔案。
    """
    tag_id = params.get("id") if params else None
    if isinstance(tag_id, str) and tag_id.strip():
        base = sanitize_name(tag_id.strip())
    else:
        base = f"asset{layer_index + 1}"
    if density is not None:
        label = format_density(density)
        if label != "1":
            base = f"{base}@{label}x"
    return f"{base}.{format}"


def display_name_filename(display_name: str, density, format: str) -> str:
    """不使用標籤時的舊式檔名：``<display name>-<density>x.<format>``."""
    return f"{sanitize_name(display_name)}-{format_density(density)}x.{format}"


def screen_dir_name(screen_name: str) -> str:
    return sanitize_name(screen_name) or "unnamed"
