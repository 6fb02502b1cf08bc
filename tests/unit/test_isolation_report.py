"""Tests for isolation report aggregation and exit codes."""

from tenantguard.domain.exceptions import IsolationViolation, PolicyGapError
from tenantguard.verification.report import (
    ALL_TABLES,
    EXIT_FAILED,
    EXIT_OK,
    EXIT_VIOLATION,
    IsolationReport,
)


def test_empty_report_passes() -> None:
    report = IsolationReport()
    assert report.passed
    assert report.exit_code == EXIT_OK


def test_all_passing_checks() -> None:
    report = IsolationReport()
    report.add("customers", "legitimate", True, "policy=12 filtered=12 foreign=0")
    report.add("customers", "adversarial empty", True, "0 rows")
    assert report.passed
    assert report.exit_code == EXIT_OK
    assert report.table_passed("customers")


def test_failure_exit_code() -> None:
    """A failing check (e.g. a policy gap) exits 1."""
    report = IsolationReport()
    gap = PolicyGapError("jobs", ["rls_forced"])
    report.add("customers", "policy", True)
    report.add("jobs", "policy", False, gap.message, gap)
    assert not report.passed
    assert report.exit_code == EXIT_FAILED
    assert report.policy_gaps == [gap]
    assert report.violations == []
    assert report.table_passed("customers")
    assert not report.table_passed("jobs")


def test_violation_outranks_failure() -> None:
    """Any isolation violation exits 2 and is marked critical."""
    report = IsolationReport()
    report.add("jobs", "policy", False, "gap", PolicyGapError("jobs", ["rls_forced"]))
    violation = IsolationViolation("customers", "'%'", 17)
    result = report.add("customers", "adversarial percent", False, violation.message, violation)
    assert result.critical
    assert result.status == "CRITICAL"
    assert report.exit_code == EXIT_VIOLATION
    assert report.violations == [violation]


def test_extend_merges_results() -> None:
    first = IsolationReport()
    first.add(ALL_TABLES, "app role", True)
    second = IsolationReport()
    second.add("customers", "legitimate", False, "expected rows")
    first.extend(second)
    assert len(first.results) == 2
    assert first.tables() == [ALL_TABLES, "customers"]
    assert first.exit_code == EXIT_FAILED


def test_render_lists_tables_and_failures() -> None:
    report = IsolationReport()
    report.add("customers", "legitimate", True, "policy=12")
    report.add("customers", "adversarial star", True, "0 rows")
    report.add("jobs", "policy", False, "missing rls_forced")
    text = report.render()
    lines = text.splitlines()
    assert lines[0].split() == ["TABLE", "RESULT", "CHECKS"]
    assert lines[1].split() == ["customers", "PASS", "2/2"]
    assert lines[2].split() == ["jobs", "FAIL", "0/1"]
    assert "[FAIL] jobs policy: missing rls_forced" in text
    assert "adversarial star" not in text
    assert text.endswith("2/3 checks passed, 0 isolation violation(s), 0 policy gap(s)")


def test_render_verbose_lists_every_check() -> None:
    report = IsolationReport()
    report.add("customers", "adversarial star", True, "0 rows")
    assert "[PASS] customers adversarial star: 0 rows" in report.render(verbose=True)
