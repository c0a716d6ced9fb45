"""CLI script to create or update a dashboard account.
Usage: python scripts/add_admin.py EMAIL PASSWORD [--role admin|editor|viewer]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `guesthouse` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session, SQLModel
from guesthouse.database import engine
from guesthouse import models, services
from guesthouse.errors import ValidationError


def main(email: str, password: str, role: str = "admin") -> int:
    """Upsert the account and print the result."""
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        try:
            user = services.AuthService(session).upsert_user(email, password, role)
        except ValidationError as exc:
            print(f"error: {exc.message}")
            return 1
        print(f"ok: {user.email} ({user.role})")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or update a dashboard user")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--role", default="admin", choices=list(models.ROLES))
    args = parser.parse_args()
    sys.exit(main(args.email, args.password, args.role))
