"""
Database Initialization and Integrity Checker
Creates missing tables and a default principal account
"""

import os
import sys
import logging
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError
from sqlalchemy.schema import sort_tables
from sqlalchemy.orm import sessionmaker
from datetime import datetime
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Import all models to register them with Base.metadata
from models import Base, User, Class, Student, RoleEnum
from teacher_models import Teacher, Subject, ClassSubject, TeacherSubject
from result_models import Result
import db_single

logger = logging.getLogger(__name__)


def get_existing_tables(engine):
    """Get list of existing tables in database"""
    inspector = inspect(engine)
    return set(inspector.get_table_names())


def get_expected_tables():
    """Get list of all expected tables from models"""
    return set(Base.metadata.tables.keys())


def create_missing_tables(engine, existing_tables, expected_tables):
    """Create any missing tables in foreign key order"""
    missing_tables = expected_tables - existing_tables

    if not missing_tables:
        logger.info("All tables exist")
        return []

    logger.info(f"Creating {len(missing_tables)} missing tables: {', '.join(sorted(missing_tables))}")

    sorted_tables = sort_tables([Base.metadata.tables[name] for name in missing_tables])

    created = []
    for table in sorted_tables:
        try:
            table.create(engine, checkfirst=True)
            created.append(table.name)
        except OperationalError as e:
            logger.error(f"Failed to create table {table.name}: {e}")
            raise

    return created


def create_default_principal(engine):
    """Create a default principal if no users exist"""
    Session = sessionmaker(bind=engine)
    session = Session()

    try:
        if session.query(User).count() > 0:
            return False

        principal = User(
            username=os.environ.get('DEFAULT_PRINCIPAL_USERNAME', 'principal'),
            email=os.environ.get('DEFAULT_PRINCIPAL_EMAIL', 'principal@school.com'),
            role=RoleEnum.PRINCIPAL.value,
            first_name='School',
            last_name='Principal',
            is_active=True
        )
        principal.set_password(os.environ.get('DEFAULT_PRINCIPAL_PASSWORD', 'principal123'))  # Change this in production!

        session.add(principal)
        session.commit()

        logger.warning(f"Created default principal '{principal.username}'. Change its password in production!")
        return True
    except Exception as e:
        session.rollback()
        logger.error(f"Could not create default principal: {e}")
        return False
    finally:
        session.close()


def initialize_database(engine=None):
    """
    Create missing tables and the default principal
    Returns: (success: bool, created_tables: list)
    """
    logger.info(f"Database initialization started at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    try:
        if engine is None:
            engine = db_single.ENGINE or db_single.init_database()[0]

        existing_tables = get_existing_tables(engine)
        created_tables = create_missing_tables(engine, existing_tables, get_expected_tables())

        if not existing_tables or 'users' in created_tables:
            create_default_principal(engine)

        logger.info(f"Database initialization completed ({len(created_tables)} tables created)")
        return True, created_tables

    except Exception as e:
        logger.exception(f"Database initialization failed: {e}")
        return False, []


def run_on_startup(engine=None):
    """Wrapper function to run on application startup"""
    success, _ = initialize_database(engine)

    if not success:
        logger.warning("Database initialization failed! The application may not work correctly.")
        return False

    return True


if __name__ == '__main__':
    """Run standalone"""
    logging.basicConfig(level=logging.INFO)
    success = run_on_startup()
    sys.exit(0 if success else 1)
