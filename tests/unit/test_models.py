"""Unit tests for run, issue, ticket and pattern models."""

import pytest

from healthbot.exceptions import TicketAlreadyAttemptedError
from healthbot.models.patterns import RemediationPattern
from healthbot.models.runs import Issue, Run
from healthbot.models.surfaces import Surface
from healthbot.models.tickets import RemediationAttempt, Ticket


def make_issue(run_id: str, severity: str = "high") -> Issue:
    return Issue.new(
        run_id,
        category="availability",
        severity=severity,
        title="Page Unavailable: /pricing",
        description="HTTP 404 response",
        target="http://platform.test/pricing",
    )


class TestRun:
    """Test cases for Run model."""

    def test_run_starts_running(self):
        run = Run.start()

        assert run.id.startswith("run_")
        assert run.status == "running"
        assert run.is_completed is False
        assert set(run.counts) == {"pages", "apis", "storage", "security"}

    def test_complete_without_issues_is_healthy(self):
        run = Run.start()
        run.complete([], duration_ms=12)

        assert run.status == "healthy"
        assert run.public_status == "HEALTHY"
        assert run.issues_found == 0
        assert run.duration_ms == 12
        assert run.ended_at is not None

    def test_complete_with_issues(self):
        run = Run.start()
        run.complete([make_issue(run.id), make_issue(run.id)], duration_ms=40)

        assert run.status == "issues_found"
        assert run.public_status == "ISSUES_FOUND"
        assert run.issues_found == 2

    def test_run_is_finalized_once(self):
        run = Run.start()
        run.complete([], duration_ms=1)

        with pytest.raises(ValueError, match="already finalized"):
            run.fail("boom", duration_ms=2)

    def test_fail_records_error(self):
        run = Run.start()
        run.fail("ledger unreachable", duration_ms=3)

        assert run.status == "error"
        assert run.error_message == "ledger unreachable"

    def test_from_dict_restores_counters(self):
        run = Run.start()
        run.counts["pages"].record(passed=3, failed=1)
        run.details["pages"].append({"target": "/gone", "status": 404})
        run.complete([make_issue(run.id)], duration_ms=5)

        restored = Run.from_dict(run.to_dict())

        assert restored.counts["pages"].checked == 4
        assert restored.counts["pages"].failed == 1
        assert restored.details["pages"] == [{"target": "/gone", "status": 404}]
        assert restored.status == "issues_found"


class TestIssue:
    """Test cases for Issue model."""

    def test_unknown_severity_rejected(self):
        with pytest.raises(ValueError, match="Unknown severity"):
            make_issue("run_1", severity="urgent")

    def test_issue_requires_run(self):
        with pytest.raises(ValueError, match="Run ID cannot be empty"):
            make_issue("")


class TestSurface:
    """Test cases for Surface model."""

    def test_page_accepts_any_non_error_status(self):
        surface = Surface(name="page:/", kind="page", target="/")

        assert surface.accepts(200)
        assert surface.accepts(304)
        assert not surface.accepts(404)
        assert not surface.accepts(503)

    def test_api_accepts_expected_set_only(self):
        surface = Surface(
            name="api:GET /api/credits",
            kind="api",
            target="/api/credits",
            expected_statuses=(200, 401),
        )

        assert surface.accepts(401)
        assert not surface.accepts(204)

    def test_header_set_counts_each_header(self):
        surface = Surface(
            name="security-headers",
            kind="security_headers",
            target="/",
            required_headers=("x-frame-options", "referrer-policy"),
        )

        assert surface.check_count == 2
        assert surface.issue_category == "security"

    def test_header_set_requires_headers(self):
        with pytest.raises(ValueError, match="at least one header"):
            Surface(name="security-headers", kind="security_headers", target="/")


class TestTicket:
    """Test cases for Ticket model."""

    def test_new_ticket_is_eligible(self):
        ticket = Ticket.new("Dashboard shows old data", category="bug")

        assert ticket.status == "open"
        assert ticket.is_eligible is True

    def test_attempt_flag_is_set_once(self):
        ticket = Ticket.new("Login fails with 401")
        ticket.mark_attempted(successful=False, logs="no match")

        assert ticket.auto_fix_attempted is True
        assert ticket.is_eligible is False
        with pytest.raises(TicketAlreadyAttemptedError):
            ticket.mark_attempted(successful=True, logs="again")

    def test_successful_attempt_sets_resolved_at(self):
        ticket = Ticket.new("Cache is stale")
        ticket.mark_attempted(
            successful=True,
            logs="done",
            status="resolved",
            resolution="Cleared cache and refreshed data",
        )

        assert ticket.status == "resolved"
        assert ticket.resolved_at is not None

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError, match="Unknown ticket status"):
            Ticket(id="t1", title="x", status="closed")


class TestRemediationPattern:
    """Test cases for RemediationPattern model."""

    def test_keywords_match_case_insensitively(self):
        pattern = RemediationPattern(
            id="memory-issue",
            keywords=("OOM",),
            category="performance",
            action="memory_cleanup",
            description="Cleaned up memory",
            steps=("Triggered garbage collection",),
            success_rate=0.7,
        )

        assert pattern.matches("worker killed: oom")
        assert not pattern.matches("all good")

    def test_success_rate_bounds(self):
        with pytest.raises(ValueError, match="success rate"):
            RemediationPattern(
                id="bad",
                keywords=("x",),
                category="error",
                action="noop",
                description="noop",
                steps=("noop",),
                success_rate=1.5,
            )

    def test_skipped_attempt_cannot_name_pattern(self):
        with pytest.raises(ValueError, match="cannot reference a pattern"):
            RemediationAttempt(
                id="attempt_1",
                ticket_id="ticket_1",
                pattern_id="rate-limit",
                confidence=0.0,
                outcome="skipped_no_match",
            )

    def test_blank_keyword_rejected(self):
        with pytest.raises(ValueError, match="blank keyword"):
            RemediationPattern(
                id="catch-all",
                keywords=("timeout", " "),
                category="error",
                action="noop",
                description="noop",
                steps=("noop",),
                success_rate=0.5,
            )
