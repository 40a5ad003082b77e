"""
Grade classification for exam results

A single eight-band scale is used for every write and every aggregate:
A+ >= 90, A >= 80, B+ >= 70, B >= 60, C+ >= 50, C >= 40, D >= 35, otherwise F.
"""

from models import GradeEnum
from errors import DomainError


# (minimum percentage, grade), highest band first
GRADE_SCALE = (
    (90, GradeEnum.A_PLUS),
    (80, GradeEnum.A),
    (70, GradeEnum.B_PLUS),
    (60, GradeEnum.B),
    (50, GradeEnum.C_PLUS),
    (40, GradeEnum.C),
    (35, GradeEnum.D),
)

FAIL_GRADE = GradeEnum.F


def calculate_percentage(obtained, possible) -> float:
    """Percentage of obtained over possible marks; 0 when nothing was possible"""
    if not possible:
        return 0.0
    return obtained * 100.0 / possible


def classify(obtained, possible) -> GradeEnum:
    """
    Map marks to a letter grade.

    Raises:
        DomainError if possible <= 0 or obtained < 0
    """
    if possible is None or possible <= 0:
        raise DomainError('Maximum marks must be greater than zero')
    if obtained is None or obtained < 0:
        raise DomainError('Obtained marks cannot be negative')

    return grade_for_percentage(calculate_percentage(obtained, possible))


def grade_for_percentage(percentage) -> GradeEnum:
    for minimum, grade in GRADE_SCALE:
        if percentage >= minimum:
            return grade
    return FAIL_GRADE


def is_passing(obtained, possible) -> bool:
    return classify(obtained, possible) != FAIL_GRADE
