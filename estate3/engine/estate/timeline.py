"""Age and timeline resolution for the estate projection."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

from estate3.engine.estate.inputs import AssumptionInputs
from estate3.engine.estate.profile import ProfileView

__all__ = [
    "DEFAULT_CURRENT_AGE",
    "MIN_DEATH_AGE",
    "MIN_YEARS_TO_DEATH",
    "Timeline",
    "age_on",
    "resolve_current_age",
    "resolve_death_age",
    "resolve_timeline",
]

DEFAULT_CURRENT_AGE = 55.0
MIN_DEATH_AGE = 93.0
MIN_YEARS_TO_DEATH = 5.0


@dataclass(frozen=True)
class Timeline:
    """Resolved ages and the projected calendar year of death."""

    current_age: float
    death_age: float
    year_of_death: int

    @property
    def years_to_death(self) -> float:
        return max(0.0, self.death_age - self.current_age)


def age_on(date_of_birth: dt.date, as_of: dt.date) -> int:
    """Full years elapsed between ``date_of_birth`` and ``as_of``."""

    before_birthday = (as_of.month, as_of.day) < (date_of_birth.month, date_of_birth.day)
    return as_of.year - date_of_birth.year - int(before_birthday)


def resolve_current_age(
    assumptions: AssumptionInputs, profile: ProfileView, as_of: dt.date
) -> float:
    if assumptions.current_age is not None:
        return assumptions.current_age
    if profile.current_age is not None:
        return profile.current_age
    if profile.date_of_birth is not None:
        return float(age_on(profile.date_of_birth, as_of))
    return DEFAULT_CURRENT_AGE


def resolve_death_age(
    assumptions: AssumptionInputs, profile: ProfileView, current_age: float
) -> float:
    """Pick the projected age at death.

    Overrides only count when they lie after the current age; otherwise the
    horizon defaults to ``max(93, current_age + 5)``.
    """

    override = assumptions.projected_death_age
    if override is not None and override > current_age:
        return override
    if profile.longevity_age is not None and profile.longevity_age > current_age:
        return profile.longevity_age
    return max(MIN_DEATH_AGE, current_age + MIN_YEARS_TO_DEATH)


def resolve_timeline(
    assumptions: AssumptionInputs,
    profile: ProfileView,
    as_of: dt.date | None = None,
) -> Timeline:
    """Resolve current age, death age and year of death.

    Args:
      assumptions: Caller overrides.
      profile: Household profile view.
      as_of: Valuation date; defaults to today.

    Returns:
      The resolved :class:`Timeline`. Missing inputs never raise, they fall
      back to the documented defaults.
    """

    today = as_of or dt.date.today()
    current_age = resolve_current_age(assumptions, profile, today)
    death_age = resolve_death_age(assumptions, profile, current_age)
    years = max(0.0, death_age - current_age)
    return Timeline(
        current_age=current_age,
        death_age=death_age,
        year_of_death=today.year + int(years),
    )
