from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from app.core.config import settings
from app.core.database import init_db
from app.core.exceptions import register_exception_handlers
from app.core.logging_config import logger
from app.routers import auth, business
# ---------------------------------------------------------
# 1. LIFESPAN MANAGER
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- STARTUP ---
    logger.info("Initialization Started...")
    try:
        await init_db()
        logger.info(f"Connected to Database '{settings.DATABASE_NAME}'")
    except Exception:
        logger.exception("Could not connect to Database")
        raise

    yield

    # --- SHUTDOWN ---
    logger.info("System Shutting Down...")

# ---------------------------------------------------------
# 2. APP INITIALIZATION
# ---------------------------------------------------------
app = FastAPI(
    title=settings.APP_NAME,
    lifespan=lifespan,
    description="Vyapaal business, role and staff management API"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(business.router, prefix="/business", tags=["Business Management"])

@app.get("/", tags=["System"])
def root():
    return {"system": settings.APP_NAME, "status": "Online", "documentation": "/docs"}

@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "ok"}
