"""
Core models: users, classes and students
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Date, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
import enum

Base = declarative_base()


class RoleEnum(enum.Enum):
    PRINCIPAL = "principal"
    TEACHER = "teacher"
    STUDENT = "student"


class GradeEnum(enum.Enum):
    A_PLUS = "A+"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C_PLUS = "C+"
    C = "C"
    D = "D"
    F = "F"


# ===== USER MODEL =====
class User(Base, UserMixin):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    username = Column(String(80), unique=True, nullable=False)
    email = Column(String(120), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default='student')  # principal, teacher, student
    first_name = Column(String(50))
    last_name = Column(String(50))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self):
        return f'<User {self.username} ({self.role})>'


# ===== ACADEMIC MODELS =====

class Class(Base):
    __tablename__ = 'classes'
    __table_args__ = (
        UniqueConstraint('grade_level', 'section', 'academic_year', name='unique_class_section_year'),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(20), nullable=False)  # e.g., "9A"
    grade_level = Column(Integer, nullable=False)  # e.g., 9
    section = Column(String(5), nullable=False)  # e.g., "A"
    academic_year = Column(String(20), nullable=False)  # e.g., "2024-2025"
    class_teacher_id = Column(Integer, ForeignKey('teachers.id', ondelete='SET NULL'), nullable=True)
    description = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    students = relationship("Student", back_populates="student_class")
    class_teacher = relationship("Teacher", foreign_keys=[class_teacher_id])
    offered_subjects = relationship("ClassSubject", back_populates="class_ref", cascade="all, delete-orphan")

    def __repr__(self):
        return f'<Class {self.name} ({self.academic_year})>'


class Student(Base):
    __tablename__ = 'students'
    __table_args__ = (
        UniqueConstraint('class_id', 'roll_number', name='unique_roll_per_class'),
        Index('idx_student_class', 'class_id'),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    admission_number = Column(String(20), unique=True, nullable=False)
    class_id = Column(Integer, ForeignKey('classes.id', ondelete='SET NULL'), nullable=True)  # unassigned allowed
    roll_number = Column(String(10))
    admission_date = Column(Date)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User")
    student_class = relationship("Class", back_populates="students")
    results = relationship("Result", back_populates="student", cascade="all, delete-orphan")

    @property
    def full_name(self):
        return self.user.full_name if self.user else ''

    def to_dict(self):
        return {
            'id': self.id,
            'admission_number': self.admission_number,
            'name': self.full_name,
            'class_id': self.class_id,
            'class_name': self.student_class.name if self.student_class else None,
            'roll_number': self.roll_number,
        }

    def __repr__(self):
        return f'<Student {self.full_name} ({self.admission_number})>'
