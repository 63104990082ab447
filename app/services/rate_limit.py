# app/services/rate_limit.py
from __future__ import annotations

import os
import time
from typing import Optional, Tuple

from redis.asyncio import Redis
from app.core.config import settings as _settings


# ---- 參數 ----
REDIS_URL: str = getattr(_settings, "REDIS_URL", "redis://localhost:6379/0")
WINDOW_SEC: int = int(getattr(_settings, "RATE_LIMIT_WINDOW_SEC", 600))
MAX_PER_IP: int = int(getattr(_settings, "RATE_LIMIT_MAX_PER_IP", 60))

# 單例 Redis（lazy-init）
_redis: Optional[Redis] = None


def _enabled() -> bool:
    # pytest 執行中一律停用，避免 Redis 與事件圈干擾
    return bool(_settings.RATE_LIMIT_ENABLED) and not os.getenv("PYTEST_CURRENT_TEST")


def _get_redis() -> Redis:
    """Lazy 初始化 Redis 連線。"""
    global _redis
    if _redis is None:
        _redis = Redis.from_url(
            REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis


def _key_ip(ip: str) -> str:
    return f"rl:analyze:ip:{ip or 'unknown'}"


async def _prune(redis: Redis, key: str, now_s: float) -> None:
    """移除滑動視窗外的紀錄（score < now - WINDOW_SEC）。"""
    await redis.zremrangebyscore(key, "-inf", now_s - WINDOW_SEC)


async def _oldest_ts(redis: Redis, key: str) -> Optional[float]:
    data = await redis.zrange(key, 0, 0, withscores=True)
    if data:
        # 形式 [(member, score)]，score 為 epoch 秒
        return float(data[0][1])
    return None


def retry_after_seconds(now_s: float, oldest: Optional[float]) -> int:
    """距離最舊紀錄滑出視窗的剩餘秒數，至少 1。"""
    return max(1, int(WINDOW_SEC - (now_s - (oldest or now_s))))


async def check_limit_and_hit(ip: str) -> Tuple[bool, int]:
    """
    檢查這個 IP 是否超出分析次數；若允許，會「順便記一次」。
    回傳：(allowed, retry_after_seconds)
    """
    if not _enabled():
        return True, 0

    r = _get_redis()
    now_s = time.time()
    key = _key_ip(ip)

    await _prune(r, key, now_s)
    count = int(await r.zcard(key))
    if count >= MAX_PER_IP:
        oldest = await _oldest_ts(r, key)
        return False, retry_after_seconds(now_s, oldest)

    await r.zadd(key, {f"{now_s:.6f}": now_s})
    await r.expire(key, WINDOW_SEC)
    return True, 0


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
