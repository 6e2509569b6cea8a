"""
Zeplin REST API 唯讀封裝

Zeplin API 限制每位使用者每分鐘 200 次請求；client 內建滑動視窗節流，
fetch adapter 會從 worker thread 呼叫，因此節流器需要 thread-safe。
"""

import threading
import time
from collections import deque
from typing import Optional

import requests


class ZeplinAPIError(Exception):
    """API 呼叫失敗；``status`` 為 HTTP 狀態碼（連線失敗時為 None）."""

    def __init__(self, message: str, status: Optional[int] = None, url: str = ""):
        super().__init__(message)
        self.status = status
        self.url = url


class RateLimiter:
    """滑動視窗節流：``period`` 秒內最多 ``max_calls`` 次."""

    def __init__(self, max_calls: int = 200, period: float = 60.0, clock=time.monotonic, sleep=time.sleep):
        self.max_calls = max_calls
        self.period = period
        self._clock = clock
        self._sleep = sleep
        self._calls: deque = deque()
        self._lock = threading.Lock()

    def acquire(self) -> None:
        with self._lock:
            while True:
                now = self._clock()
                while self._calls and now - self._calls[0] >= self.period:
                    self._calls.popleft()
                if len(self._calls) < self.max_calls:
                    self._calls.append(now)
                    return
                self._sleep(self.period - (now - self._calls[0]))


class ZeplinAPIClient:
    """Zeplin REST API（v1）唯讀 client."""

    BASE_URL = "https://api.zeplin.dev/v1"

    def __init__(self, token: str, rate_limiter: Optional[RateLimiter] = None, timeout: float = 30.0):
        self.token = token
        self.timeout = timeout
        self.rate_limiter = rate_limiter or RateLimiter()
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        })

    def _get(self, path: str, params: Optional[dict] = None):
        url = f"{self.BASE_URL}{path}"
        self.rate_limiter.acquire()
        try:
            resp = self.session.get(url, params=params or None, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.HTTPError as e:
            status = getattr(e.response, "status_code", None)
            raise ZeplinAPIError(f"Zeplin API {status} for {path}", status=status, url=url) from e
        except ValueError as e:
            # requests.JSONDecodeError 同時是 ValueError
            raise ZeplinAPIError(f"Zeplin API returned invalid JSON for {path}: {e}", url=url) from e
        except requests.RequestException as e:
            raise ZeplinAPIError(f"Zeplin API request failed for {path}: {e}", url=url) from e

    def get_project(self, project_id: str) -> dict:
        return self._get(f"/projects/{project_id}")

    def list_screens(self, project_id: str, offset: int = 0, limit: int = 30) -> list:
        return self._get(f"/projects/{project_id}/screens", {"offset": offset, "limit": limit})

    def get_latest_screen_version(self, project_id: str, screen_id: str) -> dict:
        return self._get(f"/projects/{project_id}/screens/{screen_id}/versions/latest")
