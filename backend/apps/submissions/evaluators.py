"""
判题协作方（代码评测服务）

- BaseEvaluator 定义统一接口：evaluate(problem, language, code) -> EvaluationResult
- HttpJudgeEvaluator 通过 HTTP 调用外部评测服务
- 评测超时视为 time_limit_exceeded；服务不可达或返回格式异常抛 EvaluatorUnavailableError
- 具体实现由 settings.CODE_EVALUATOR_CLASS 指定，测试中可替换为确定性的实现
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings
from django.utils.module_loading import import_string

from apps.common.exceptions import EvaluatorUnavailableError
from apps.common.infra.logger import get_logger, logger_extra
from apps.contests.models import Problem

from .models import Submission

logger = get_logger(__name__)

Status = Submission.Status


@dataclass
class EvaluationResult:
    status: str
    test_cases_passed: int = 0
    total_test_cases: int = 0
    execution_time_ms: Optional[int] = None
    memory_kb: Optional[int] = None
    message: str = ""


class BaseEvaluator(ABC):
    """评测接口：实现类只负责给出判题结果，不关心计分"""

    @abstractmethod
    def evaluate(self, problem: Problem, language: str, code: str) -> EvaluationResult:
        ...


class HttpJudgeEvaluator(BaseEvaluator):
    """
    HTTP 评测客户端：
    - POST {url}，携带题目限制、测试用例与代码
    - 期望返回 {"status", "test_cases_passed", "total_test_cases", "execution_time_ms", "memory_kb", "message"}
    """

    def __init__(self, url: str | None = None, token: str | None = None, timeout: float | None = None):
        self.url = url or getattr(settings, "CODE_EVALUATOR_URL", "")
        self.token = token if token is not None else getattr(settings, "CODE_EVALUATOR_TOKEN", "")
        self.timeout = timeout or float(getattr(settings, "CODE_EVALUATOR_TIMEOUT", 10))

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def evaluate(self, problem: Problem, language: str, code: str) -> EvaluationResult:
        if not self.url:
            raise EvaluatorUnavailableError(message="未配置判题服务地址")
        body = {
            "language": language,
            "source": code,
            "time_limit_ms": problem.time_limit_ms,
            "memory_limit_mb": problem.memory_limit_mb,
            "test_cases": list(problem.test_cases or []),
        }
        try:
            resp = requests.post(self.url, json=body, headers=self._headers(), timeout=self.timeout)
        except requests.Timeout:
            logger.warning(
                "判题服务超时",
                extra=logger_extra({"problem_id": problem.id, "timeout": self.timeout}),
            )
            return EvaluationResult(
                status=Status.TIME_LIMIT_EXCEEDED,
                total_test_cases=len(problem.test_cases or []),
                message="评测超时",
            )
        except requests.RequestException as exc:
            logger.error("判题服务不可达", extra=logger_extra({"problem_id": problem.id, "error": str(exc)}))
            raise EvaluatorUnavailableError() from exc

        if resp.status_code >= 400:
            logger.error(
                "判题服务返回错误",
                extra=logger_extra({"problem_id": problem.id, "status_code": resp.status_code}),
            )
            raise EvaluatorUnavailableError()
        try:
            payload = resp.json()
            return self._parse(payload)
        except (ValueError, TypeError, KeyError) as exc:
            logger.error("判题服务返回格式异常", extra=logger_extra({"problem_id": problem.id}))
            raise EvaluatorUnavailableError(message="判题服务返回格式异常") from exc

    @staticmethod
    def _parse(payload: dict) -> EvaluationResult:
        status = payload["status"]
        # partial 由计分规则推导，评测服务不应直接返回
        if status not in Status.values or status in (Status.PENDING, Status.PARTIAL):
            raise ValueError(f"unknown status: {status}")
        return EvaluationResult(
            status=status,
            test_cases_passed=int(payload.get("test_cases_passed") or 0),
            total_test_cases=int(payload.get("total_test_cases") or 0),
            execution_time_ms=payload.get("execution_time_ms"),
            memory_kb=payload.get("memory_kb"),
            message=str(payload.get("message") or "")[:500],
        )


def get_evaluator() -> BaseEvaluator:
    """按配置实例化评测实现"""
    path = getattr(settings, "CODE_EVALUATOR_CLASS", "apps.submissions.evaluators.HttpJudgeEvaluator")
    return import_string(path)()
