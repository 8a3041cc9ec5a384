# apps/common/utils/redis_keys.py

"""
Redis 键名集中管理，避免各模块随意拼接带来不一致
"""

from __future__ import annotations


def leaderboard_key(contest_id: int, view: str) -> str:
    """排行榜缓存键：view 区分实时视图与封榜视图，管理者的未封榜视图即实时视图"""
    return f"contest:{contest_id}:leaderboard:{view}"

