import asyncio
from app.core.database import init_db
from app.core.config import settings
from app.core.logging_config import logger
from app.core.security import get_password_hash
from app.models.business import Business
from app.models.user import User
from app.services.membership import create_business

async def seed_data():
    logger.info(f"Connecting to DB: {settings.DATABASE_NAME}...")
    await init_db()

    # 1. Get Credentials from .env
    owner_email = (settings.DEMO_OWNER_EMAIL or "owner@vyapaal.in").lower()
    owner_pass = settings.DEMO_OWNER_PASSWORD or "owner123"

    # 2. Drop the previous demo owner and their business
    existing_owner = await User.find_one(User.email == owner_email)
    if existing_owner:
        logger.warning(f"Demo owner '{owner_email}' already exists, re-creating")
        await Business.find(Business.owner_id == existing_owner.user_id).delete()
        await existing_owner.delete()

    # 3. Create owner + business through the normal membership path
    owner = User(
        email=owner_email,
        name="Demo Owner",
        hashed_password=get_password_hash(owner_pass),
    )
    await owner.insert()
    business = await create_business(owner, "Demo Traders")

    print("------------------------------------------")
    print(f"Owner:    {owner_email} / {owner_pass}")
    print(f"Business: {business.business_name} ({business.business_code})")
    for role in business.roles:
        print(f"  {role.role_name:<18} join code: {role.role_code}")
    print("------------------------------------------")

if __name__ == "__main__":
    asyncio.run(seed_data())
