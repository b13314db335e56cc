# scripts/setup/seed_users.py
"""
Create (or list) actor accounts in the local users table.
Usage:
  python scripts/setup/seed_users.py                      # demo agent / installer / inspector / admin
  python scripts/setup/seed_users.py --role INSTALLER --name "Jo Fitter" --email jo@example.com --phone +61400000000
  python scripts/setup/seed_users.py --list
"""

import sys
import os
import argparse
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from datetime import datetime
from erps.database import SessionLocal, create_tables
from erps.models.user import User
from erps.services.lifecycle_rules import UserRole

DEMO_USERS = [
    {"full_name": "Demo Agent", "email": "agent@example.com", "phone_number": "+61400000001", "role": "AGENT"},
    {"full_name": "Demo Installer", "email": "installer@example.com", "phone_number": "+61400000002",
     "role": "INSTALLER", "is_accredited": True},
    {"full_name": "Demo Inspector", "email": "inspector@example.com", "phone_number": "+61400000003",
     "role": "INSPECTOR", "is_certified": True},
    {"full_name": "ERPS Admin", "email": "admin@example.com", "phone_number": "+61400000004", "role": "ADMIN"},
]


def add_user(db, **fields) -> User:
    existing = db.query(User).filter(User.email == fields["email"]).first()
    if existing:
        print(f"   • {existing.role:<9} {existing.id}  {existing.full_name} (exists)")
        return existing
    user = User(
        full_name=fields["full_name"],
        email=fields["email"],
        phone_number=fields.get("phone_number"),
        role=fields["role"],
        is_accredited=fields.get("is_accredited", fields["role"] == UserRole.INSTALLER.value),
        is_certified=fields.get("is_certified", fields["role"] == UserRole.INSPECTOR.value),
        is_active=True,
        created_at=datetime.utcnow(),
    )
    db.add(user)
    db.commit()
    print(f"   ✓ {user.role:<9} {user.id}  {user.full_name}")
    return user


def main():
    parser = argparse.ArgumentParser(description="Seed ERPS actor accounts")
    parser.add_argument("--role", choices=[r.value for r in UserRole])
    parser.add_argument("--name")
    parser.add_argument("--email")
    parser.add_argument("--phone")
    parser.add_argument("--list", action="store_true")
    args = parser.parse_args()

    create_tables()
    db = SessionLocal()
    try:
        if args.list:
            for user in db.query(User).order_by(User.role).all():
                print(f"   {user.role:<9} {user.id}  {user.full_name} <{user.email}>")
            return
        if args.role:
            if not (args.name and args.email):
                parser.error("--name and --email are required with --role")
            add_user(db, full_name=args.name, email=args.email, phone_number=args.phone, role=args.role)
            return

        print("👥 Seeding demo users (use the ids as X-Actor-Id):")
        for fields in DEMO_USERS:
            add_user(db, **fields)
    finally:
        db.close()


if __name__ == "__main__":
    main()
