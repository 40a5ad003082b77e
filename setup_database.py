#!/usr/bin/env python
"""
Database Setup Script
Run this script to initialize or verify database integrity manually
Usage: python setup_database.py
"""

import sys
import logging
from init_db import run_on_startup

if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)

    print("\n" + "="*70)
    print("MANUAL DATABASE SETUP & VERIFICATION")
    print("="*70)
    print("This script will:")
    print("  1. Create all missing tables")
    print("  2. Create a default principal if none exists")
    print("="*70 + "\n")

    success = run_on_startup()

    if success:
        print("\n✓ Database setup completed successfully!")
        print("\nYou can now run the application with: python main.py")
        sys.exit(0)
    else:
        print("\n✗ Database setup failed!")
        print("Please check the log messages above and fix any issues.")
        sys.exit(1)
