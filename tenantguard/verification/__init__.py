"""Isolation verification: adversarial harness, fixture seeding and reporting."""

from tenantguard.verification.harness import (
    AdversarialBinding,
    IsolationHarness,
    adversarial_bindings,
)
from tenantguard.verification.report import CheckResult, IsolationReport

__all__ = [
    "AdversarialBinding",
    "CheckResult",
    "IsolationHarness",
    "IsolationReport",
    "adversarial_bindings",
]
