from __future__ import annotations

import datetime as dt

import pytest

from estate3.engine.estate.inputs import AssumptionInputs
from estate3.engine.estate.profile import ProfileView
from estate3.engine.estate.timeline import (
    DEFAULT_CURRENT_AGE,
    MIN_DEATH_AGE,
    age_on,
    resolve_timeline,
)

AS_OF = dt.date(2024, 6, 1)


def test_age_on_counts_full_years() -> None:
    assert age_on(dt.date(1964, 6, 2), AS_OF) == 59
    assert age_on(dt.date(1964, 6, 1), AS_OF) == 60


def test_defaults_when_nothing_supplied() -> None:
    timeline = resolve_timeline(AssumptionInputs(), ProfileView(), AS_OF)
    assert timeline.current_age == DEFAULT_CURRENT_AGE
    assert timeline.death_age == MIN_DEATH_AGE
    assert timeline.year_of_death == 2024 + 38
    assert timeline.years_to_death == pytest.approx(38.0)


def test_current_age_precedence() -> None:
    profile = ProfileView(current_age=70.0, date_of_birth=dt.date(1980, 1, 1))
    assert resolve_timeline(AssumptionInputs(current_age=65.0), profile, AS_OF).current_age == 65.0
    assert resolve_timeline(AssumptionInputs(), profile, AS_OF).current_age == 70.0
    dob_only = ProfileView(date_of_birth=dt.date(1980, 1, 1))
    assert resolve_timeline(AssumptionInputs(), dob_only, AS_OF).current_age == 44.0


def test_death_age_ignores_overrides_not_after_current_age() -> None:
    assumptions = AssumptionInputs(current_age=90.0, projected_death_age=85.0)
    timeline = resolve_timeline(assumptions, ProfileView(longevity_age=88.0), AS_OF)
    assert timeline.death_age == pytest.approx(95.0)


def test_death_age_prefers_override_then_longevity() -> None:
    profile = ProfileView(longevity_age=88.0)
    override = resolve_timeline(
        AssumptionInputs(current_age=60.0, projected_death_age=85.0), profile, AS_OF
    )
    assert override.death_age == 85.0
    assert override.year_of_death == 2049
    longevity = resolve_timeline(AssumptionInputs(current_age=60.0), profile, AS_OF)
    assert longevity.death_age == 88.0
