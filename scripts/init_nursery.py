"""One-time bootstrap: create the tables, the project status row and an Admin user.

Usage:
  python scripts/init_nursery.py --email admin@example.com --password 's3cretpass' --full-name Admin
Or provide via env: ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_FULL_NAME
"""
import os
import argparse
from getpass import getpass

from nursery_core.app.db import SessionLocal, create_db_and_tables
from nursery_core.app import models
from nursery_core.app.models import ProjectStage
from nursery_core.app.security import PasswordPolicy, get_password_hash
from nursery_core.app.services.status_service import initialize_project_status
from nursery_core.app.store import QueryClient


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument('--email')
    parser.add_argument('--password')
    parser.add_argument('--full-name')
    parser.add_argument('--stage', choices=[s.value for s in ProjectStage], default=ProjectStage.SEED_COLLECTION.value)
    args = parser.parse_args()

    email = args.email or os.getenv('ADMIN_EMAIL')
    password = args.password or os.getenv('ADMIN_PASSWORD')
    full_name = args.full_name or os.getenv('ADMIN_FULL_NAME') or 'Admin'
    if not email:
        email = input('Email: ').strip()
    if not password:
        password = getpass('Password: ')

    ok, errors = PasswordPolicy.validate(password)
    if not ok:
        raise SystemExit('Password rejected: ' + '; '.join(errors))

    create_db_and_tables()
    db = SessionLocal()
    try:
        status = initialize_project_status(QueryClient(db), ProjectStage(args.stage))
        print('Project stage:', status['label'])

        email = email.lower()
        existing = db.query(models.User).filter(models.User.email == email).first()
        if existing:
            print('User already exists:', email)
            return
        user = models.User(full_name=full_name, email=email, password_hash=get_password_hash(password), role='Admin')
        db.add(user)
        db.commit()
        print('Created Admin user:', email)
    finally:
        db.close()


if __name__ == '__main__':
    main()
