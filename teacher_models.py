"""
Teacher, Subject and assignment models
TeacherSubject rows are the teaching assignments that gate teacher access to results
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Date, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, date
from models import Base


class Teacher(Base):
    __tablename__ = 'teachers'
    __table_args__ = (
        UniqueConstraint('employee_id', name='uq_teachers_employee_id'),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    employee_id = Column(String(20), nullable=False)
    department = Column(String(100))
    joining_date = Column(Date)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User")
    subjects = relationship("TeacherSubject", back_populates="teacher", cascade="all, delete-orphan")

    @property
    def full_name(self):
        return self.user.full_name if self.user else ''

    def __repr__(self):
        return f"<Teacher {self.employee_id}>"


class Subject(Base):
    """Subject identified by a stable code"""
    __tablename__ = 'subjects'
    __table_args__ = (
        UniqueConstraint('code', name='uq_subjects_code'),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    teacher_subjects = relationship("TeacherSubject", back_populates="subject", cascade="all, delete-orphan")
    class_offerings = relationship("ClassSubject", back_populates="subject", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Subject id={self.id} name={self.name} code={self.code}>"


# ===== JUNCTION/ASSOCIATION MODELS =====

class ClassSubject(Base):
    """Subjects offered in a class, independent of who teaches them"""
    __tablename__ = 'class_subjects'
    __table_args__ = (
        UniqueConstraint('class_id', 'subject_id', name='unique_class_subject'),
    )

    id = Column(Integer, primary_key=True)
    class_id = Column(Integer, ForeignKey('classes.id', ondelete='CASCADE'), nullable=False)
    subject_id = Column(Integer, ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False)
    is_mandatory = Column(Boolean, default=True)
    credits = Column(Integer, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    class_ref = relationship("Class", back_populates="offered_subjects")
    subject = relationship("Subject", back_populates="class_offerings")

    def __repr__(self):
        return f"<ClassSubject class_id={self.class_id} subject_id={self.subject_id}>"


class TeacherSubject(Base):
    """Teaching assignment: a teacher teaches a subject in a class"""
    __tablename__ = 'teacher_subjects'
    __table_args__ = (
        UniqueConstraint('teacher_id', 'subject_id', 'class_id', name='unique_teacher_subject_class'),
        Index('idx_tsubj_teacher', 'teacher_id'),
        Index('idx_tsubj_class_subject', 'class_id', 'subject_id'),
    )

    id = Column(Integer, primary_key=True)
    teacher_id = Column(Integer, ForeignKey('teachers.id', ondelete='CASCADE'), nullable=False)
    subject_id = Column(Integer, ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False)
    class_id = Column(Integer, ForeignKey('classes.id', ondelete='CASCADE'), nullable=False)
    assigned_date = Column(Date, default=date.today)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    teacher = relationship("Teacher", back_populates="subjects")
    subject = relationship("Subject", back_populates="teacher_subjects")
    class_ref = relationship("Class")

    def to_dict(self):
        return {
            'assignment_id': self.id,
            'teacher_id': self.teacher_id,
            'teacher_name': self.teacher.full_name if self.teacher else None,
            'subject_id': self.subject_id,
            'subject_name': self.subject.name if self.subject else None,
            'subject_code': self.subject.code if self.subject else None,
            'class_id': self.class_id,
            'class_name': self.class_ref.name if self.class_ref else None,
        }

    def __repr__(self):
        return f"<TeacherSubject teacher_id={self.teacher_id} subject_id={self.subject_id} class_id={self.class_id}>"
