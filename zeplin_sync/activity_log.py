"""
Activity Log：依畫面分桶的錯誤 / 警告紀錄

每筆 entry 依到達順序附加在所屬畫面的 bucket；沒有畫面脈絡時放進
``unknown``。寫檔時 bucket 依畫面名稱排序。
"""

import json
import os
from typing import Optional

UNKNOWN_SCREEN = "unknown"

LEVEL_ERROR = "error"
LEVEL_WARNING = "warning"

_ICONS = {LEVEL_ERROR: "❌", LEVEL_WARNING: "⚠️ "}


class ActivityLog:
    """只增不改的執行紀錄，整個 run 結束時一次寫出."""

    def __init__(self, echo: bool = True):
        self.echo = echo
        self._buckets: dict[str, list[dict]] = {}

    def add(
        self,
        description: str,
        screen: Optional[str] = None,
        detail=None,
        level: str = LEVEL_ERROR,
    ) -> dict:
        bucket = screen or UNKNOWN_SCREEN
        entry = {"description": description, "level": level}
        if detail is not None:
            entry["errorDetail"] = str(detail)
        self._buckets.setdefault(bucket, []).append(entry)
        if self.echo:
            suffix = f" ({entry['errorDetail']})" if "errorDetail" in entry else ""
            print(f"   {_ICONS.get(level, '•')} [{bucket}] {description}{suffix}")
        return entry

    def error(self, description: str, screen: Optional[str] = None, detail=None) -> dict:
        return self.add(description, screen=screen, detail=detail, level=LEVEL_ERROR)

    def warning(self, description: str, screen: Optional[str] = None, detail=None) -> dict:
        return self.add(description, screen=screen, detail=detail, level=LEVEL_WARNING)

    def entries(self, screen: Optional[str] = None) -> list:
        return list(self._buckets.get(screen or UNKNOWN_SCREEN, []))

    def count(self, level: Optional[str] = None) -> int:
        return sum(
            1
            for entries in self._buckets.values()
            for entry in entries
            if level is None or entry["level"] == level
        )

    def to_list(self) -> list:
        """[{screen, entries}]，依畫面名稱排序."""
        return [
            {"screen": name, "entries": list(self._buckets[name])}
            for name in sorted(self._buckets)
        ]

    def to_text(self) -> str:
        lines = []
        for bucket in self.to_list():
            lines.append(f"## {bucket['screen']}")
            for entry in bucket["entries"]:
                line = f"[{entry['level'].upper()}] {entry['description']}"
                if "errorDetail" in entry:
                    line += f": {entry['errorDetail']}"
                lines.append(line)
            lines.append("")
        return "\n".join(lines)

    def save(self, folder: str) -> tuple[str, str]:
        """寫出 log.json 與 log.txt，回傳兩個路徑."""
        os.makedirs(folder, exist_ok=True)
        json_path = os.path.join(folder, "log.json")
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(self.to_list(), f, indent=2, ensure_ascii=False)
        text_path = os.path.join(folder, "log.txt")
        with open(text_path, "w", encoding="utf-8") as f:
            f.write(self.to_text())
        return json_path, text_path

    def __len__(self) -> int:
        return self.count()
