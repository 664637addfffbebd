"""
Create the tables and the first back-office admin.

Run once with env set:
  ADMIN_EMAIL=admin@mwss.org
  ADMIN_PASSWORD=YourSecurePassword

Creates:
- every table declared on Base (existing tables are left alone)
- admins: one row for ADMIN_EMAIL (password is reset if the admin already exists)
"""
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mwss.auth.security import hash_password
from mwss.core.config import settings
from mwss.core.logging_config import configure_logging
from mwss.core.models import Admin
from mwss.db.session import AsyncSessionLocal, Base, engine

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_FULL_NAME = "MWSS Admin"


async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables ensured")


async def seed_admin(db: AsyncSession) -> None:
    email = (settings.admin_email or "").strip().lower()
    password = settings.admin_password
    if not email or not password:
        logger.warning("ADMIN_EMAIL / ADMIN_PASSWORD not set; skipping admin user")
        return

    result = await db.execute(select(Admin).where(Admin.email == email))
    admin = result.scalar_one_or_none()
    if admin is None:
        db.add(
            Admin(
                email=email,
                password_hash=hash_password(password),
                full_name=DEFAULT_ADMIN_FULL_NAME,
            )
        )
        logger.info("Created admin %s", email)
    else:
        admin.password_hash = hash_password(password)
        admin.is_active = True
        logger.info("Updated existing admin %s", email)
    await db.commit()


async def main() -> None:
    configure_logging(settings.log_level)
    await create_tables()
    async with AsyncSessionLocal() as db:
        try:
            await seed_admin(db)
        except Exception:
            await db.rollback()
            logger.exception("Admin seed failed")
            raise
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
