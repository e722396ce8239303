"""Age arithmetic for routing and review.

Age categories are derived at evaluation time from a date of birth and are
never persisted, so a flow that straddles a birthday re-routes on the next
request.
"""

import enum
from datetime import date

from dental_flow.constants import ADULTS_MIN_AGE, SENIORS_MIN_AGE, YOUTH_MIN_AGE


class AgeCategory(str, enum.Enum):
    CHILDREN = "children"
    YOUTH = "youth"
    ADULTS = "adults"
    SENIORS = "seniors"


def age_on(date_of_birth: date, today: date) -> int:
    """Whole years between *date_of_birth* and *today*.

    Raises ``ValueError`` for a birth date in the future.
    """
    if date_of_birth > today:
        raise ValueError(f"date of birth {date_of_birth} is after {today}")
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def age_category(age: int) -> AgeCategory:
    if age < 0:
        raise ValueError(f"invalid age: {age}")
    if age >= SENIORS_MIN_AGE:
        return AgeCategory.SENIORS
    if age >= ADULTS_MIN_AGE:
        return AgeCategory.ADULTS
    if age >= YOUTH_MIN_AGE:
        return AgeCategory.YOUTH
    return AgeCategory.CHILDREN


def age_category_on(date_of_birth: date, today: date) -> AgeCategory:
    return age_category(age_on(date_of_birth, today))
