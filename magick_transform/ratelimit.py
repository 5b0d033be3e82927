"""
进程内限流器

按 "客户端 + 资源路径" 计数，在滚动窗口内限制尝试次数。
这是跨请求共享的唯一可变状态，所有访问都在锁内完成。
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict


class RateLimiter:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._attempts: Dict[str, Deque[float]] = {}

    def attempt(self, key: str, max_attempts: int, decay_seconds: float = 60) -> bool:
        """
        原子地记录一次尝试并判断是否允许。

        Args:
            key: 限流键，例如 ``img:127.0.0.1:photos/cat.jpg``。
            max_attempts: 窗口内允许的最大次数。
            decay_seconds: 滚动窗口长度（秒）。

        Returns:
            True 表示允许；超出上限时返回 False，且不计入本次尝试。
        """
        now = self._clock()
        with self._lock:
            hits = self._attempts.setdefault(key, deque())
            while hits and hits[0] <= now - decay_seconds:
                hits.popleft()
            if len(hits) >= max_attempts:
                return False
            hits.append(now)
            self._prune(now, decay_seconds)
            return True

    def _prune(self, now: float, decay_seconds: float) -> None:
        # 清理已过期的键，防止长期运行时无限增长
        if len(self._attempts) < 10_000:
            return
        for key in [k for k, hits in self._attempts.items() if not hits or hits[-1] <= now - decay_seconds]:
            del self._attempts[key]

    def clear(self) -> None:
        with self._lock:
            self._attempts.clear()
