from __future__ import annotations

import pytest

from recruitfunnel.core import ShortlistEligibilityGate
from recruitfunnel.storage import InMemoryStore


def build_gate(threshold: int = 30) -> ShortlistEligibilityGate:
    return ShortlistEligibilityGate(projects=InMemoryStore(), threshold=threshold)


def test_eligibility_opens_exactly_at_threshold_and_stays_open():
    gate = build_gate()

    at_29 = gate.evaluate_count(29)
    at_30 = gate.evaluate_count(30)
    at_31 = gate.evaluate_count(31)

    assert not at_29.eligible
    assert at_29.remaining_needed == 1
    assert at_29.estimated_days_to_eligibility == 1
    assert at_30.eligible
    assert at_30.remaining_needed == 0
    assert at_31.eligible


def test_eligibility_is_monotonic_over_counts():
    gate = build_gate(threshold=5)
    flags = [gate.evaluate_count(count).eligible for count in range(0, 20)]

    first_open = flags.index(True)
    assert first_open == 5
    assert all(flags[first_open:])


def test_progress_message_and_estimate():
    status = build_gate().evaluate_count(20)

    assert status.required_applications == 30
    assert status.current_applications == 20
    assert status.message == "Need 10 more applications to enable AI shortlisting"
    assert status.estimated_days_to_eligibility == 4


def test_threshold_must_be_positive():
    with pytest.raises(ValueError):
        build_gate(threshold=0)
