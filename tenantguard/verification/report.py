"""Isolation report: per-table check results and the process exit code."""

from __future__ import annotations

from dataclasses import dataclass, field

from tenantguard.domain.exceptions import (
    IsolationViolation,
    PolicyGapError,
    TenantGuardException,
)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_VIOLATION = 2

# Table name used for checks that span every table (e.g. connection reuse).
ALL_TABLES = "*"


@dataclass
class CheckResult:
    """Outcome of one check against one table."""

    table: str
    check: str
    passed: bool
    detail: str = ""
    error: TenantGuardException | None = None

    @property
    def critical(self) -> bool:
        return isinstance(self.error, IsolationViolation)

    @property
    def status(self) -> str:
        if self.passed:
            return "PASS"
        return "CRITICAL" if self.critical else "FAIL"


@dataclass
class IsolationReport:
    """Collected check results of one harness run."""

    results: list[CheckResult] = field(default_factory=list)

    def add(
        self,
        table: str,
        check: str,
        passed: bool,
        detail: str = "",
        error: TenantGuardException | None = None,
    ) -> CheckResult:
        result = CheckResult(table, check, passed, detail, error)
        self.results.append(result)
        return result

    def extend(self, other: IsolationReport) -> None:
        self.results.extend(other.results)

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failures(self) -> list[CheckResult]:
        return [r for r in self.results if not r.passed]

    @property
    def violations(self) -> list[IsolationViolation]:
        return [r.error for r in self.results if isinstance(r.error, IsolationViolation)]

    @property
    def policy_gaps(self) -> list[PolicyGapError]:
        return [r.error for r in self.results if isinstance(r.error, PolicyGapError)]

    def tables(self) -> list[str]:
        """Tables in first-seen order."""
        return list(dict.fromkeys(r.table for r in self.results))

    def table_passed(self, table: str) -> bool:
        return all(r.passed for r in self.results if r.table == table)

    @property
    def exit_code(self) -> int:
        if self.violations:
            return EXIT_VIOLATION
        if self.failures:
            return EXIT_FAILED
        return EXIT_OK

    def render(self, verbose: bool = False) -> str:
        """Plain-text report: one line per table, then failing checks.

        With verbose, every check is listed.
        """
        lines = []
        width = max([len(t) for t in self.tables()] + [5])
        lines.append(f"{'TABLE':<{width}}  RESULT  CHECKS")
        for table in self.tables():
            checks = [r for r in self.results if r.table == table]
            failed = sum(1 for r in checks if not r.passed)
            status = "PASS" if not failed else "FAIL"
            lines.append(
                f"{table:<{width}}  {status:<6}  {len(checks) - failed}/{len(checks)}"
            )
        shown = self.results if verbose else self.failures
        if shown:
            lines.append("")
        for r in shown:
            line = f"[{r.status}] {r.table} {r.check}"
            if r.detail:
                line += f": {r.detail}"
            lines.append(line)
        lines.append("")
        total = len(self.results)
        lines.append(
            f"{total - len(self.failures)}/{total} checks passed, "
            f"{len(self.violations)} isolation violation(s), "
            f"{len(self.policy_gaps)} policy gap(s)"
        )
        return "\n".join(lines)
