from django.test import SimpleTestCase
from rest_framework import status

from core.exceptions import (
    AccessDeniedError,
    CascadeDeleteError,
    ConflictError,
    NotFoundError,
    ValidationError,
    custom_exception_handler,
)


class ExceptionHandlerTestCase(SimpleTestCase):
    def handle(self, exc):
        return custom_exception_handler(exc, {})

    def test_validation_errors_keep_every_field(self):
        resp = self.handle(ValidationError({"title": ["Too long"], "progress": ["Too big"]}))

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["success"], False)
        self.assertEqual(resp.data["status_code"], 400)
        self.assertEqual(set(resp.data["errors"]), {"title", "progress"})

    def test_status_codes(self):
        cases = [
            (NotFoundError("Task not found"), 404),
            (AccessDeniedError("Access denied"), 403),
            (ConflictError("Cannot remove project owner"), 409),
        ]
        for exc, code in cases:
            resp = self.handle(exc)
            self.assertEqual(resp.status_code, code)
            self.assertEqual(resp.data["errors"]["detail"], str(exc.detail))

    def test_list_detail_is_wrapped(self):
        resp = self.handle(ValidationError(["bad payload"]))
        self.assertEqual(resp.data["errors"], {"detail": ["bad payload"]})

    def test_unexpected_failures_are_opaque(self):
        for exc in (CascadeDeleteError(), RuntimeError("password=hunter2")):
            with self.assertLogs("taskboard.core", level="ERROR"):
                resp = self.handle(exc)

            self.assertEqual(resp.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
            self.assertEqual(resp.data["errors"], {"detail": "Internal server error."})
