"""Seed script for development data.

Creates:
- Super admin "root@academyhub.local" (password provided via env)

Can be run multiple times safely (skips if the platform is bootstrapped).
"""
import asyncio
import os
import sys
from pathlib import Path

# Add the project root to path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

from academyhub.core.database import AsyncSessionLocal
from academyhub.core.errors import BadRequestError, ConflictError
from academyhub.services.bootstrap_service import BootstrapService


async def seed_data():
    """Seed development data."""
    print("Starting database seeding...")

    admin_email = os.environ.get("SEED_ADMIN_EMAIL", "root@academyhub.local")
    admin_password = os.environ.get("SEED_ADMIN_PASSWORD")
    if not admin_password:
        print("✗ Missing SEED_ADMIN_PASSWORD environment variable")
        print("  Example: SEED_ADMIN_PASSWORD='YourStrongPassword123!' python scripts/seed_data.py")
        return

    async with AsyncSessionLocal() as db:
        try:
            user = await BootstrapService(db).create_super_admin(
                email=admin_email,
                password=admin_password,
                first_name=os.environ.get("SEED_ADMIN_FIRST_NAME", "Super"),
                last_name=os.environ.get("SEED_ADMIN_LAST_NAME", "Admin"),
            )
        except ConflictError:
            print("✓ Super admin already exists, nothing to do")
            return
        except BadRequestError as e:
            print(f"✗ Password validation failed: {e.message}")
            return
        await db.commit()
        print(f"✓ Created super admin '{user.email}' ({user.code})")

    print("\n✓ Database seeding completed successfully!")
    print("\nYou can now login with:")
    print(f"  Email: {admin_email}")


if __name__ == "__main__":
    asyncio.run(seed_data())
