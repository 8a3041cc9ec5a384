"""
用户目录（只读适配层）

比赛、报名、提交模块只通过 UserDirectory 获取用户的角色与所属社区，
不直接依赖账号表结构；账号本身由外部身份服务维护。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .repo import UserRepo


@dataclass(frozen=True)
class UserInfo:
    id: int
    role: str
    community_id: Optional[int]
    username: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "community_id": self.community_id,
            "username": self.username,
        }


class UserDirectory:
    """get_user(id) -> UserInfo；未知或已停用的用户抛 NotFoundError"""

    def __init__(self, repo: UserRepo | None = None):
        self.repo = repo or UserRepo()

    def get_user(self, user_id: int) -> UserInfo:
        user = self.repo.get_active(user_id)
        return UserInfo(
            id=user.id,
            role=user.role,
            community_id=user.community_id,
            username=user.username,
        )
