#!/usr/bin/env python3
"""
Create the first admin account so the admin API can be used.

Usage:
  ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=secret123 python scripts/seed_admin.py
  # DATABASE_URL and SECRET_KEY are read from .env like the app does

Does nothing if a user with that email already exists.
"""
import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ambulance_billing.core.exceptions import WorkflowError
from ambulance_billing.database import AsyncSessionLocal, close_db
from ambulance_billing.models.enums import UserRole
from ambulance_billing.schemas.admin import UserCreate
from ambulance_billing.services.user_service import UserService


async def seed(email: str, password: str, name: str) -> int:
    try:
        async with AsyncSessionLocal() as db:
            if await UserService.get_user_by_email(db, email):
                print(f"User {email} already exists, nothing to do.")
                return 0
            user = await UserService.create_user(
                db, UserCreate(name=name, email=email, password=password, role=UserRole.ADMIN)
            )
    except WorkflowError as exc:
        print(f"FAILED: {exc.code}: {exc.message}")
        return 1
    finally:
        await close_db()
    print(f"SUCCESS: admin {user.email} created with id {user.id}")
    return 0


def main():
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        print("ERROR: ADMIN_EMAIL and ADMIN_PASSWORD must be set.")
        sys.exit(1)
    name = os.getenv("ADMIN_NAME", "Administrator")
    sys.exit(asyncio.run(seed(email, password, name)))


if __name__ == "__main__":
    main()
