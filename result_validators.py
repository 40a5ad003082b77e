"""
Result Form Validation Utilities
Validates result rows submitted for entry before anything touches the database
"""

from datetime import date, datetime
from dateutil import parser as date_parser

from errors import ValidationError


REQUIRED_FIELDS = ('student_id', 'subject_id', 'exam_type', 'max_marks', 'obtained_marks', 'academic_year')

# Largest value an INT column holds
MAX_INT = 2147483647


class ResultValidator:
    """Validates result payloads"""

    @staticmethod
    def validate_integer(value, field_name, minimum=None, maximum=MAX_INT):
        """
        Validate a whole number
        Args:
            value: int or integral string
            field_name: Name of the field for error messages
            minimum: Smallest accepted value
            maximum: Largest accepted value
        Returns:
            int
        Raises:
            ValidationError if invalid
        """
        if isinstance(value, bool):
            raise ValidationError(f"{field_name} must be a whole number", field=field_name)

        if isinstance(value, float):
            if not value.is_integer():
                raise ValidationError(f"{field_name} must be a whole number", field=field_name)
            value = int(value)
        elif isinstance(value, str):
            try:
                value = int(value.strip())
            except ValueError:
                raise ValidationError(f"{field_name} must be a whole number", field=field_name)
        elif not isinstance(value, int):
            raise ValidationError(f"{field_name} must be a whole number", field=field_name)

        if minimum is not None and value < minimum:
            raise ValidationError(f"{field_name} must be at least {minimum}", field=field_name)
        if maximum is not None and value > maximum:
            raise ValidationError(f"{field_name} must be at most {maximum}", field=field_name)
        return value

    @staticmethod
    def validate_marks(obtained, maximum):
        """
        Validate a marks pair: max_marks > 0 and 0 <= obtained_marks <= max_marks
        Returns:
            (obtained, maximum) as ints
        """
        maximum = ResultValidator.validate_integer(maximum, 'max_marks', minimum=1)
        obtained = ResultValidator.validate_integer(obtained, 'obtained_marks', minimum=0)
        if obtained > maximum:
            raise ValidationError('Obtained marks cannot exceed maximum marks', field='obtained_marks')
        return obtained, maximum

    @staticmethod
    def validate_exam_date(value):
        """Parse an exam date; optional"""
        if value is None or value == '':
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            return date_parser.isoparse(str(value).strip()).date()
        except ValueError:
            raise ValidationError('exam_date must be an ISO date (YYYY-MM-DD)', field='exam_date')

    @staticmethod
    def validate_text(value, field_name, max_length):
        if value is None:
            return None
        value = str(value).strip()
        if len(value) > max_length:
            raise ValidationError(f"{field_name} cannot be longer than {max_length} characters", field=field_name)
        return value or None

    @staticmethod
    def validate_result(payload, default_academic_year=None):
        """
        Validate one submitted result row.
        Returns:
            dict of cleaned values
        Raises:
            ValidationError naming the missing or invalid field
        """
        if not isinstance(payload, dict):
            raise ValidationError('Each result must be an object')

        data = dict(payload)
        if not data.get('academic_year') and default_academic_year:
            data['academic_year'] = default_academic_year

        missing = [field for field in REQUIRED_FIELDS if data.get(field) is None or data.get(field) == '']
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

        obtained, maximum = ResultValidator.validate_marks(data['obtained_marks'], data['max_marks'])

        exam_type = ResultValidator.validate_text(data['exam_type'], 'exam_type', 50)
        academic_year = ResultValidator.validate_text(data['academic_year'], 'academic_year', 20)
        if not exam_type:
            raise ValidationError('exam_type is required', field='exam_type')
        if not academic_year:
            raise ValidationError('academic_year is required', field='academic_year')

        return {
            'student_id': ResultValidator.validate_integer(data['student_id'], 'student_id', minimum=1),
            'subject_id': ResultValidator.validate_integer(data['subject_id'], 'subject_id', minimum=1),
            'exam_type': exam_type,
            'academic_year': academic_year,
            'obtained_marks': obtained,
            'max_marks': maximum,
            'exam_date': ResultValidator.validate_exam_date(data.get('exam_date')),
            'remarks': ResultValidator.validate_text(data.get('remarks'), 'remarks', 2000),
            'teacher_id': ResultValidator.validate_integer(data['teacher_id'], 'teacher_id', minimum=1)
            if data.get('teacher_id') not in (None, '') else None,
        }

    @staticmethod
    def validate_batch(payloads, default_academic_year=None):
        """
        Validate every row of a batch before any is written.
        Raises:
            ValidationError for the first bad row, naming it by position, student and subject
        """
        if not isinstance(payloads, list) or not payloads:
            raise ValidationError('At least one result is required', field='results')

        cleaned = []
        seen = {}
        for index, payload in enumerate(payloads, start=1):
            try:
                row = ResultValidator.validate_result(payload, default_academic_year)
            except ValidationError as e:
                raise ValidationError(f"Result #{index} {_describe(payload)}: {e.message}", field=e.field)

            key = (row['student_id'], row['subject_id'], row['exam_type'], row['academic_year'])
            if key in seen:
                raise ValidationError(
                    f"Result #{index} {_describe(payload)}: duplicates result #{seen[key]} in the same batch"
                )
            seen[key] = index
            cleaned.append(row)
        return cleaned


def _describe(payload):
    if not isinstance(payload, dict):
        return ''
    return f"(student {payload.get('student_id')}, subject {payload.get('subject_id')})"
