from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from app.core.config import settings
from app.core.logging_config import logger
from app.models.user import User
from app.models.business import Business

DOCUMENT_MODELS = [User, Business]

async def init_db(client=None):
    """Connect to MongoDB and initialize Beanie"""

    # Tests pass an in-memory client; everything else connects for real
    if client is None:
        client = AsyncIOMotorClient(settings.MONGODB_URL)

    await init_beanie(
        database=client[settings.DATABASE_NAME],
        document_models=DOCUMENT_MODELS
    )

    logger.info(f"Beanie initialized with database: {settings.DATABASE_NAME}")
    return client
