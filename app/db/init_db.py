import asyncio
import logging

from app.core.settings import settings
from app.db.session import AsyncSessionLocal
from app.services import branches as branch_service
from app.services import users as user_service

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """
    Seed branch reference data and the bootstrap admin user.
    """
    async with AsyncSessionLocal() as session:
        if settings.seed_branches:
            created = await branch_service.seed_branches(session)
            logger.info("Branch seed complete created=%s", created)
        admin = await user_service.ensure_admin(
            session, settings.seed_admin_employee_id, settings.seed_admin_password
        )
        if admin is None:
            logger.info("No bootstrap admin configured")


if __name__ == "__main__":
    asyncio.run(init_db())
