#!/usr/bin/env python3
"""
Create or promote a back-office admin.

Creates the identity account when the email is unknown (generating a
password unless one is given), sets the admin role claim and upserts the
user profile.

Usage:
    python3 scripts/create_admin.py admin@example.com
    python3 scripts/create_admin.py admin@example.com --password 's3cret-pass'
"""

import argparse
import asyncio
from datetime import timedelta

from backoffice.config import settings
from backoffice.db.document_store import SqlDocumentStore
from backoffice.db.session import close_engines, get_write_session
from backoffice.observability import get_logger, setup_logging
from backoffice.services.identity import IdentityProvider
from backoffice.services.users import bootstrap_admin

logger = get_logger(__name__)


async def create_admin(email: str, password: str | None) -> None:
    identity = IdentityProvider(
        session_secret=settings.SESSION_JWT_SECRET,
        access_secret=settings.ACCESS_TOKEN_SECRET,
        issuer=settings.jwt_issuer,
        access_token_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
        session_ttl=timedelta(days=settings.session_ttl_days),
    )

    try:
        async with get_write_session() as session:
            profile, generated = await bootstrap_admin(
                SqlDocumentStore(session), identity, email, password
            )
    finally:
        await close_engines()

    print(f"Admin ready: {profile.email} (uid {profile.uid})")
    if generated:
        print(f"Generated password: {generated}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or promote a back-office admin")
    parser.add_argument("email", help="Admin email address")
    parser.add_argument("--password", help="Password to set (generated for new accounts if omitted)")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(create_admin(args.email, args.password))


if __name__ == "__main__":
    main()
