# -*- coding: utf-8 -*-
"""
通用 WebSocket 消费者

- 轻量级实时推送，不做持久化/历史消息（持久化通知见 apps.notifications）
- NotifyConsumer：个人通道（报名结果、判题结果）
- ContestEventConsumer：按比赛 slug 分组（状态流转、排行榜刷新）
"""

from __future__ import annotations

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from apps.common.ws_utils import contest_group, user_group


class BaseAuthorizedConsumer(AsyncJsonWebsocketConsumer):
    """要求已登录；子类通过 get_groups 声明需要加入的组"""

    groups_joined: list[str]

    def get_groups(self) -> list[str]:
        return []

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            await self.close(code=4401)
            return
        self.groups_joined = self.get_groups()
        for group in self.groups_joined:
            await self.channel_layer.group_add(group, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        for group in getattr(self, "groups_joined", []):
            await self.channel_layer.group_discard(group, self.channel_name)

    async def receive_json(self, content, **kwargs):
        # 客户端只需要心跳
        if isinstance(content, dict) and content.get("type") == "ping":
            await self.send_json({"type": "pong"})

    async def broadcast(self, event):
        """ws_utils._safe_group_send 发送的 type=broadcast 事件"""
        payload = {k: v for k, v in event.items() if k != "type"}
        await self.send_json(payload)


class NotifyConsumer(BaseAuthorizedConsumer):
    def get_groups(self) -> list[str]:
        return [user_group(self.scope["user"].id)]


class ContestEventConsumer(BaseAuthorizedConsumer):
    def get_groups(self) -> list[str]:
        slug = self.scope["url_route"]["kwargs"]["contest_slug"]
        return [contest_group(slug)]
