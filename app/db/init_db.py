import asyncio
import logging
from app.core.config import settings
from app.core.database import async_session_maker, create_all_tables
from app.core.logging_config import setup_logging
from app.db.seeds.initial_data import create_initial_data

logger = logging.getLogger(__name__)

async def init_db(seed: bool = True):
    """Create tables and demo data for local development"""
    if settings.ENVIRONMENT == "production":
        raise RuntimeError("🚫 init_db is for local databases; run alembic upgrade in production")

    try:
        logger.info(f"🗄️  Initializing database for {settings.ENVIRONMENT} environment...")
        await create_all_tables()

        if seed:
            async with async_session_maker() as session:
                await create_initial_data(session)

        logger.info("✅ Database initialized successfully")

    except Exception as e:
        logger.error(f"❌ Database initialization failed: {str(e)}")
        raise

if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_db())
