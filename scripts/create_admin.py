import sys
import os

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

import argparse
import asyncio
import getpass
from detachements.core.database import session_manager
from detachements.services.AdminUserStore import AdminUserStore


async def create_admin(email: str, password: str, full_name: str, title: str = None, phone: str = None):
    """Create an admin account allowed to list and decide on requests."""
    await session_manager.init()
    try:
        async with session_manager.get_session() as db:
            store = AdminUserStore(db)
            if await store.get_by_email(email):
                print(f"ℹ️ Admin {email} already exists, nothing to do")
                return

            admin = await store.create(
                email=email,
                password=password,
                full_name=full_name,
                title=title,
                phone=phone,
            )
            print(f"✅ Created admin {admin.email} ({admin.admin_id})")
    finally:
        await session_manager.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a Détachements admin account")
    parser.add_argument("email")
    parser.add_argument("--full-name", required=True)
    parser.add_argument("--title")
    parser.add_argument("--phone")
    args = parser.parse_args()

    password = getpass.getpass("Password: ")
    if not password:
        print("❌ Password is required")
        sys.exit(1)

    asyncio.run(create_admin(args.email, password, args.full_name, args.title, args.phone))
