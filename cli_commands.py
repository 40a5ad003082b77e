"""
Flask CLI commands for the results service
"""

import click
from flask import Flask, current_app
from datetime import datetime
from db_single import get_session
from init_db import run_on_startup
from models import User, Class, Student, RoleEnum
from teacher_models import Teacher, Subject
from auth_helpers import generate_token
from ranking_helpers import compute_rankings
from scope_helpers import Unrestricted, assign_teacher
from errors import AppError
import logging

logger = logging.getLogger(__name__)

def register_cli_commands(app: Flask):
    """Register CLI commands with the Flask app"""

    @app.cli.command("setup-db")
    def setup_db_command():
        """Create tables and the default principal"""
        click.echo("🚀 Setting up database...")
        if run_on_startup():
            click.echo("✅ Database setup completed successfully!")
        else:
            click.echo("❌ Database setup failed!")

    @app.cli.command("create-user")
    @click.option("--username", required=True, help="Login username")
    @click.option("--email", required=True, help="Email address")
    @click.option("--password", required=True, help="Password")
    @click.option("--role", required=True, type=click.Choice([r.value for r in RoleEnum]), help="Role")
    @click.option("--first-name", required=True, help="First name")
    @click.option("--last-name", required=True, help="Last name")
    @click.option("--employee-id", help="Employee ID (teachers)")
    @click.option("--admission-number", help="Admission number (students)")
    @click.option("--class-name", help="Class name, e.g. 9A (students)")
    @click.option("--roll-number", help="Roll number (students)")
    def create_user_command(username, email, password, role, first_name, last_name,
                            employee_id, admission_number, class_name, roll_number):
        """Create a principal, teacher or student account"""
        session = get_session()
        try:
            if session.query(User).filter_by(username=username).first():
                click.echo(f"❌ Username '{username}' already exists")
                return

            user = User(
                username=username,
                email=email,
                first_name=first_name,
                last_name=last_name,
                role=role,
                is_active=True
            )
            user.set_password(password)
            session.add(user)
            session.flush()

            if role == RoleEnum.TEACHER.value:
                session.add(Teacher(
                    user_id=user.id,
                    employee_id=employee_id or f"EMP{user.id:04d}",
                    joining_date=datetime.utcnow().date()
                ))
            elif role == RoleEnum.STUDENT.value:
                class_id = None
                if class_name:
                    school_class = session.query(Class).filter_by(
                        name=class_name,
                        academic_year=current_app.config['DEFAULT_ACADEMIC_YEAR']
                    ).first()
                    if not school_class:
                        click.echo(f"❌ Class '{class_name}' not found")
                        session.rollback()
                        return
                    class_id = school_class.id
                session.add(Student(
                    user_id=user.id,
                    admission_number=admission_number or f"ADM{user.id:05d}",
                    class_id=class_id,
                    roll_number=roll_number,
                    admission_date=datetime.utcnow().date()
                ))

            session.commit()
            click.echo(f"✅ {role.title()} '{username}' created")

        except Exception as e:
            session.rollback()
            click.echo(f"❌ Failed to create user: {e}")
        finally:
            session.close()

    @app.cli.command("assign-teacher")
    @click.option("--employee-id", required=True, help="Teacher employee ID")
    @click.option("--subject-code", required=True, help="Subject code, e.g. MATH")
    @click.option("--class-name", required=True, help="Class name, e.g. 9A")
    @click.option("--academic-year", help="Academic year of the class")
    def assign_teacher_command(employee_id, subject_code, class_name, academic_year):
        """Assign a teacher to teach a subject in a class"""
        session = get_session()
        try:
            academic_year = academic_year or current_app.config['DEFAULT_ACADEMIC_YEAR']
            teacher = session.query(Teacher).filter_by(employee_id=employee_id).first()
            subject = session.query(Subject).filter_by(code=subject_code).first()
            school_class = session.query(Class).filter_by(name=class_name, academic_year=academic_year).first()

            for label, value in (('Teacher', teacher), ('Subject', subject), ('Class', school_class)):
                if not value:
                    click.echo(f"❌ {label} not found")
                    return

            assignment = assign_teacher(session, Unrestricted(), teacher.id, subject.id, school_class.id)
            session.commit()
            click.echo(f"✅ {teacher.full_name} now teaches {subject.name} in {school_class.name} "
                       f"(assignment {assignment.id})")

        except AppError as e:
            session.rollback()
            click.echo(f"❌ {e.message}")
        finally:
            session.close()

    @app.cli.command("issue-token")
    @click.option("--username", required=True, help="User to issue a bearer token for")
    def issue_token_command(username):
        """Print a bearer token for an active user"""
        session = get_session()
        try:
            user = session.query(User).filter_by(username=username, is_active=True).first()
            if not user:
                click.echo(f"❌ Active user '{username}' not found")
                return
            click.echo(generate_token(user))
        finally:
            session.close()

    @app.cli.command("show-rankings")
    @click.option("--academic-year", help="Academic year (defaults to the configured year)")
    @click.option("--top", default=10, help="Number of students to show (default: 10)")
    def show_rankings_command(academic_year, top):
        """Print the grand-total standings for a year"""
        academic_year = academic_year or current_app.config['DEFAULT_ACADEMIC_YEAR']
        session = get_session()
        try:
            table = compute_rankings(session, academic_year)
            if not len(table):
                click.echo(f"📭 No results for {academic_year}")
                return

            click.echo(f"🏆 Rankings for {academic_year}:")
            click.echo("-" * 80)
            for row in table.grand_total_rankings[:top]:
                click.echo(
                    f"  #{row['school_rank']:<3} {row['student_name']:<30} "
                    f"{row['class_name'] or '-':<6} class #{row['class_rank'] or '-':<3} "
                    f"{row['grand_total']}/{row['total_possible']} ({row['grand_percentage']}%)"
                )
            click.echo("-" * 80)
            summary = table.summary()
            click.echo(f"  {summary['totalStudents']} students, overall average {summary['overallAverage']}%")
        finally:
            session.close()
