"""
Contest Arena ASGI 入口

- HTTP 请求交给 Django 处理
- WebSocket（通知通道、比赛事件通道）经来源校验与 JWT 鉴权后路由到 Consumer
"""

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "Config.settings")

from django.core.asgi import get_asgi_application  # noqa: E402

# AppRegistry 就绪后才能导入模型相关模块
http_application = get_asgi_application()

from channels.auth import AuthMiddlewareStack  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from Config.routing import websocket_urlpatterns  # noqa: E402
from apps.common.ws_auth import JWTAuthMiddleware  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": http_application,
        "websocket": AllowedHostsOriginValidator(
            JWTAuthMiddleware(AuthMiddlewareStack(URLRouter(websocket_urlpatterns)))
        ),
    }
)
