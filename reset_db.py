import asyncio
from app.core.database import init_db
from app.core.logging_config import logger
from app.models.business import Business
from app.models.user import User

async def reset_db():
    logger.info("Connecting to database...")
    await init_db()

    logger.warning("Deleting ALL businesses and users...")
    await Business.delete_all()
    await User.delete_all()

    logger.info("Database is clean! You can now run 'python seed.py'.")

if __name__ == "__main__":
    asyncio.run(reset_db())
