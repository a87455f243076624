"""
Protect Admin Script
=============================================================================
Promotes one account to `admin` and marks it protected. After that its role
cannot be changed through PUT /api/roles by anyone, other admins included.

The application does the same thing on every start when
BOOTSTRAP_ADMIN_EMAIL is set; this script is for doing it once by hand.
The account is created if it does not exist yet.

Run: python -m scripts.protect_admin --email admin@example.com
=============================================================================
"""

import argparse
import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tracker.db.engine import async_session_maker, engine
from tracker.db.repositories import TrackerRepository
from tracker.main import bootstrap_admin
from tracker.observability.logging import setup_logging


async def main(email: str):
    setup_logging()
    async with async_session_maker() as session:
        repo = TrackerRepository(session)
        await bootstrap_admin(repo, email)
        user = await repo.get_user_by_email(email.strip().lower())

    print(f"Protected admin: {user.name} <{user.email}> role={user.role} protected={user.protected}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Mark an account as the protected administrator")
    parser.add_argument("--email", required=True)
    asyncio.run(main(parser.parse_args().email))
