"""
Create an account (e.g. first admin). Run from project root:
  python -m app.scripts.create_user EMAIL PASSWORD NAME [role]
Example:
  python -m app.scripts.create_user admin@yourcompany.com 'S3curePassw0rd' 'Site Admin' admin
"""
import argparse
import sys
from collections.abc import Sequence

from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings, get_settings
from app.core.database import build_engine, build_session_factory
from app.core.errors import ConflictError, ValidationError
from app.models import Base
from app.repositories import SqlAccountRepository, SqlRefreshTokenRepository
from app.services.authenticator import Authenticator


def main(
    argv: Sequence[str] | None = None,
    settings: Settings | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> int:
    parser = argparse.ArgumentParser(description="Create a DocVault account.")
    parser.add_argument("email", help="Email address")
    parser.add_argument("password", help="Password (8+ chars with upper, lower and a digit)")
    parser.add_argument("name", help="Display name (2-50 chars)")
    parser.add_argument("role", nargs="?", default="user", choices=["user", "admin"])
    args = parser.parse_args(argv)

    settings = settings or get_settings()
    if session_factory is None:
        engine = build_engine(settings.DATABASE_URL)
        if settings.AUTO_CREATE_TABLES:
            Base.metadata.create_all(bind=engine)
        session_factory = build_session_factory(engine)

    db = session_factory()
    try:
        authenticator = Authenticator(
            SqlAccountRepository(db), SqlRefreshTokenRepository(db), settings
        )
        try:
            account, _ = authenticator.register(args.email, args.password, args.name, args.role)
        except ValidationError as e:
            for detail in e.details or []:
                print(f"{detail['field']}: {detail['message']}", file=sys.stderr)
            return 1
        except ConflictError as e:
            print(f"Account '{args.email}' not created: {e.message}.", file=sys.stderr)
            return 1
        print(f"Created account '{account.email}' (id={account.id}) with role '{account.role}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
