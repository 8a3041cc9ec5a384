"""
统一限速封装（apps.common.throttles）

- 覆盖 DRF 默认限速行为，统一抛 BizError（RateLimitError），保证响应格式
- 为代码提交、报名等写接口提供独立 throttle 类；速率配置见 settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]
"""

from __future__ import annotations

from typing import Optional

from rest_framework.exceptions import Throttled
from rest_framework.throttling import SimpleRateThrottle

from .exceptions import RateLimitError
from apps.common.infra.logger import get_logger, logger_extra

logger = get_logger(__name__)


def raise_rate_limit(message: str, wait: float | None = None) -> None:
    """将限流结果映射为 RateLimitError，保留 wait 秒数便于前端展示倒计时"""
    logger.warning("限流触发", extra=logger_extra({"detail": message, "wait": wait}))
    raise RateLimitError(message=message, extra={"wait": wait}) from Throttled(wait=wait)


class _UserOrIPPostThrottle(SimpleRateThrottle):
    """仅对 POST 生效：已登录按用户限速，匿名按 IP 限速"""

    failure_message = "操作过于频繁，请稍后再试"

    def get_cache_key(self, request, view) -> Optional[str]:
        if request.method != "POST":
            return None
        user = getattr(request, "user", None)
        if user and user.is_authenticated:
            ident = f"user_{user.pk}"
        else:
            ident = f"ip_{self.get_ident(request)}"
        return f"throttle_{self.scope}_{ident}"

    def throttle_failure(self):
        raise_rate_limit(self.failure_message, wait=self.wait())


class SubmissionRateThrottle(_UserOrIPPostThrottle):
    """
    代码提交限速：判题调用成本高，按用户限制提交频率

    scope = submission
    """

    scope = "submission"
    failure_message = "提交过于频繁，请稍后再试"


class UserPostRateThrottle(_UserOrIPPostThrottle):
    """
    通用 POST 限速：报名、答疑提问等写接口

    scope = user_post
    """

    scope = "user_post"
