"""
Exam result model
One row per (student, subject, exam type, academic year)
"""
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Text, ForeignKey,
    Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime

from models import Base


# Known exam types in reporting order; anything else sorts after these
EXAM_TYPE_ORDER = (
    'First Term Exam',
    'Second Term Exam',
    'Final Exam',
)


def exam_type_sort_key(exam_type):
    """Sort key placing the known exam types first, in term order"""
    try:
        return (EXAM_TYPE_ORDER.index(exam_type), '')
    except ValueError:
        return (len(EXAM_TYPE_ORDER), exam_type or '')


class Result(Base):
    """Marks a student obtained in one subject for one exam"""
    __tablename__ = 'results'
    __table_args__ = (
        UniqueConstraint('student_id', 'subject_id', 'exam_type', 'academic_year', name='unique_result_key'),
        CheckConstraint('max_marks > 0', name='ck_results_max_positive'),
        CheckConstraint('obtained_marks >= 0 AND obtained_marks <= max_marks', name='ck_results_obtained_range'),
        Index('idx_results_year', 'academic_year'),
        Index('idx_results_subject', 'subject_id'),
    )

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey('students.id', ondelete='CASCADE'), nullable=False)
    subject_id = Column(Integer, ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False)
    exam_type = Column(String(50), nullable=False)
    academic_year = Column(String(20), nullable=False)

    # Marks
    obtained_marks = Column(Integer, nullable=False)
    max_marks = Column(Integer, nullable=False)
    grade = Column(String(5))

    # Provenance
    teacher_id = Column(Integer, ForeignKey('teachers.id', ondelete='SET NULL'), nullable=True)
    entered_by = Column(Integer)  # user id of whoever wrote the row
    remarks = Column(Text)
    exam_date = Column(Date)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    student = relationship("Student", back_populates="results")
    subject = relationship("Subject")
    teacher = relationship("Teacher")

    @property
    def percentage(self):
        if not self.max_marks:
            return 0.0
        return round(self.obtained_marks * 100.0 / self.max_marks, 2)

    def to_dict(self):
        student = self.student
        student_class = student.student_class if student else None
        return {
            'id': self.id,
            'student_id': self.student_id,
            'student_name': student.full_name if student else None,
            'roll_number': student.roll_number if student else None,
            'class_id': student.class_id if student else None,
            'class_name': student_class.name if student_class else None,
            'subject_id': self.subject_id,
            'subject_name': self.subject.name if self.subject else None,
            'subject_code': self.subject.code if self.subject else None,
            'exam_type': self.exam_type,
            'academic_year': self.academic_year,
            'obtained_marks': self.obtained_marks,
            'max_marks': self.max_marks,
            'percentage': self.percentage,
            'grade': self.grade,
            'teacher_id': self.teacher_id,
            'teacher_name': self.teacher.full_name if self.teacher else None,
            'remarks': self.remarks,
            'exam_date': self.exam_date.isoformat() if self.exam_date else None,
        }

    def __repr__(self):
        return f"<Result Student:{self.student_id} Subject:{self.subject_id} {self.exam_type} {self.academic_year}>"
