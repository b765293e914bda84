# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for action classification (severity and description)."""

from __future__ import annotations

import pytest

from nexus_audit.audit.classifier import (
    DESCRIPTION_TEMPLATES,
    SEVERITY_MAP,
    classify,
    describe,
    humanize,
    severity_for,
)
from nexus_audit.audit.events import AuditAction
from nexus_audit.core.constants import Severity


class TestSeverity:
    def test_every_registered_action_has_a_severity(self) -> None:
        assert set(SEVERITY_MAP) == set(AuditAction)

    @pytest.mark.parametrize(
        ("action", "expected"),
        [
            ("login_success", Severity.LOW),
            ("login_failed", Severity.MEDIUM),
            ("user_deleted", Severity.HIGH),
            ("system_error", Severity.HIGH),
            ("unauthorized_access", Severity.HIGH),
            ("logs_cleaned_up", Severity.HIGH),
            ("task_deleted", Severity.MEDIUM),
        ],
    )
    def test_known_severities(self, action, expected) -> None:
        assert severity_for(action) == expected

    def test_unknown_action_is_low(self) -> None:
        assert severity_for("payroll_exported") == Severity.LOW

    def test_classification_is_deterministic(self) -> None:
        ctx = {"email": "a@example.com", "reason": "bad password"}
        assert classify("login_failed", ctx) == classify("login_failed", ctx)


class TestDescription:
    def test_template_rendered_from_context(self) -> None:
        text = describe(
            "task_status_changed",
            {
                "title": "Quarterly report",
                "old_status": "todo",
                "new_status": "done",
                "actor_email": "boss@example.com",
            },
        )
        assert text == 'Task "Quarterly report" status changed from todo to done by boss@example.com'

    def test_missing_field_falls_back_to_humanized_name(self) -> None:
        assert describe("user_deleted", {"name": "Ann"}) == "User deleted"

    def test_unknown_action_is_humanized(self) -> None:
        assert describe("payroll_exported", {"x": 1}) == "Payroll exported"

    def test_extra_context_is_ignored(self) -> None:
        text = describe("logs_cleaned_up", {"deleted_count": 3, "days": 30, "extra": True})
        assert text == "Deleted 3 logs older than 30 days"

    def test_explicit_description_wins(self) -> None:
        result = classify("login_success", {"email": "a@example.com"}, "custom text")
        assert result.description == "custom text"
        assert result.severity == Severity.LOW

    def test_every_template_names_a_registered_action(self) -> None:
        assert set(DESCRIPTION_TEMPLATES) <= set(AuditAction)


class TestHumanize:
    def test_basic(self) -> None:
        assert humanize("task_status_changed") == "Task status changed"

    def test_empty(self) -> None:
        assert humanize("") == "Unknown action"
