"""
Create an account (e.g. the first master). Run from project root:
  python -m app.scripts.create_user EMAIL PASSWORD [role] [--parent PARENT_ID] [--name NAME]
Example:
  python -m app.scripts.create_user ops@example.com your-secure-password master
"""
import argparse
import sys

from app.core.database import SessionLocal
from app.core.security import EMAIL_MAX_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN, hash_password
from app.models.user import ROLES, User
from app.services.accounts import ALLOWED_CHILD_ROLES


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a Tenantgate account (bootstrap only).")
    parser.add_argument("email", help="Email (3-255 chars)")
    parser.add_argument("password", help="Password (8-128 chars)")
    parser.add_argument("role", nargs="?", default="user", choices=list(ROLES))
    parser.add_argument("--parent", default=None, help="Parent account id (required below master/admin)")
    parser.add_argument("--name", default=None, help="Display name (center or store name)")
    args = parser.parse_args()

    email = args.email.strip()
    if len(email) < 3 or len(email) > EMAIL_MAX_LEN or "@" not in email:
        print("Invalid email.", file=sys.stderr)
        return 1
    if len(args.password) < PASSWORD_MIN_LEN or len(args.password) > PASSWORD_MAX_LEN:
        print("Password must be 8-128 characters.", file=sys.stderr)
        return 1
    if args.role not in ("master", "admin") and not args.parent:
        print(f"A {args.role} account needs --parent.", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            print(f"Account '{email}' already exists.", file=sys.stderr)
            return 1
        parent = None
        if args.parent:
            parent = db.query(User).filter(User.id == args.parent).first()
            if parent is None:
                print(f"Parent '{args.parent}' not found.", file=sys.stderr)
                return 1
            if args.role not in ALLOWED_CHILD_ROLES.get(parent.role, frozenset()):
                print(f"A {parent.role} account cannot own a {args.role} account.", file=sys.stderr)
                return 1
        user = User(
            email=email,
            username=email.split("@")[0],
            display_name=args.name,
            role=args.role,
            status="active",
            parent_id=parent.id if parent else None,
            password_hash=hash_password(args.password),
        )
        db.add(user)
        db.flush()
        user.tenant_id = user.id if args.role == "center" else (parent.tenant_id if parent else None)
        db.commit()
        print(f"Created {args.role} account '{email}' with id {user.id}.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
