# -*- coding: utf-8 -*-
"""
公共模块单测：
- 统一响应结构与全局异常处理
- 日志敏感字段过滤
- Schema 入参转换
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from django.http import Http404
from django.test import SimpleTestCase, TestCase
from django.urls import resolve
from rest_framework.exceptions import NotAuthenticated, ValidationError as DRFValidationError
from rest_framework.test import APITestCase

from apps.common import response
from apps.common.base.base_schema import BaseSchema, ensure_aware_datetime
from apps.common.exception_handler import INTERNAL_ERROR_CODE, custom_exception_handler
from apps.common.exceptions import CapacityExceededError, EvaluatorUnavailableError, ValidationError
from apps.common.infra.logger import logger_extra
from apps.common.schema_utils import api_response_schema, contest_summary_serializer, list_response


@dataclass
class _AskSchema(BaseSchema[None]):
    auto_validate: ClassVar[bool] = True
    question: str
    problem_index: int | None = None

    def validate(self) -> None:
        if not self.question.strip():
            raise ValidationError(message="问题内容不能为空")


class ResponseEnvelopeTests(SimpleTestCase):
    def test_success_payload(self):
        resp = response.success({"a": 1})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data, {"success": True, "code": 0, "message": "OK", "data": {"a": 1}})

    def test_page_success_puts_meta_in_extra(self):
        resp = response.page_success(items=[1, 2], page=1, page_size=2, total=3, has_next=True, has_previous=False)
        self.assertEqual(resp.data["data"], [1, 2])
        self.assertEqual(resp.data["extra"]["total"], 3)
        self.assertTrue(resp.data["extra"]["has_next"])


class ExceptionHandlerTests(SimpleTestCase):
    """全局异常处理：业务异常、DRF 异常、未知异常统一为相同结构"""

    def test_biz_error_keeps_code_and_status(self):
        resp = custom_exception_handler(CapacityExceededError(), {})
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["code"], 46103)
        self.assertFalse(resp.data["success"])

    def test_infrastructure_error_returns_503(self):
        resp = custom_exception_handler(EvaluatorUnavailableError(), {})
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.data["code"], 50305)

    def test_drf_exceptions_are_mapped(self):
        resp = custom_exception_handler(DRFValidationError({"title": ["不能为空"]}), {})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["message"], "不能为空")
        self.assertEqual(custom_exception_handler(NotAuthenticated(), {}).status_code, 401)
        self.assertEqual(custom_exception_handler(Http404(), {}).data["code"], 40400)

    def test_unknown_error_hides_detail(self):
        resp = custom_exception_handler(RuntimeError("db password leaked"), {})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.data["code"], INTERNAL_ERROR_CODE)
        self.assertNotIn("leaked", resp.data["message"])


class LoggerExtraTests(SimpleTestCase):
    def test_sensitive_keys_are_masked(self):
        extra = logger_extra({"contest": "spring", "code": "print(1)", "Token": "abc"})
        self.assertEqual(extra["contest"], "spring")
        self.assertEqual(extra["code"], "***")
        self.assertEqual(extra["Token"], "***")


class BaseSchemaTests(SimpleTestCase):
    def test_from_dict_ignores_unknown_fields(self):
        schema = _AskSchema.from_dict({"question": "样例是否正确？", "unexpected": 1})
        self.assertEqual(schema.question, "样例是否正确？")
        self.assertIsNone(schema.problem_index)

    def test_missing_required_field(self):
        with self.assertRaises(ValidationError):
            _AskSchema.from_dict({"problem_index": 1})

    def test_auto_validate(self):
        with self.assertRaises(ValidationError):
            _AskSchema.from_dict({"question": "   "})

    def test_ensure_aware_datetime(self):
        value = ensure_aware_datetime("2026-05-01T10:00:00", field_name="开始时间")
        self.assertIsNotNone(value.tzinfo)
        with self.assertRaises(ValidationError):
            ensure_aware_datetime("not-a-date", field_name="开始时间")


class SchemaUtilsTests(SimpleTestCase):
    def test_shared_item_serializer_can_be_bound_twice(self):
        first = contest_summary_serializer()
        second = contest_summary_serializer()
        self.assertIsNot(first, second)
        self.assertIs(type(first), type(second))
        # 同一数据结构可同时用于多个列表响应
        list_response("FirstList", contest_summary_serializer(), paginated=True)
        list_response("SecondList", contest_summary_serializer())
        api_response_schema("Wrapped", {"contest": contest_summary_serializer()})

    def test_contest_routes_resolve(self):
        self.assertEqual(resolve("/api/contests/upcoming/").url_name, "upcoming")
        self.assertEqual(resolve("/api/contests/").url_name, "list")


class HealthCheckTests(APITestCase):
    def test_health(self):
        resp = self.client.get("/api/health/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["status"], "ok")


class ThrottleTests(TestCase):
    """限流异常映射为 42900"""

    def test_rate_limit_error(self):
        from apps.common.exceptions import RateLimitError
        from apps.common.throttles import raise_rate_limit

        with self.assertRaises(RateLimitError) as ctx:
            raise_rate_limit("提交过于频繁，请稍后再试", wait=3)
        self.assertEqual(ctx.exception.code, 42900)
        self.assertEqual(ctx.exception.extra["wait"], 3)
