import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from src.config import settings
from src.database import Base, engine
from src.logging_config import configure_logging
from src.auth import router as auth_router
from src.routes import router as routes_router
from src.bookings import router as bookings_router
from src.wallet import router as wallet_router
from src.deals import router as deals_router, functions_router
from src.admin import router as admin_router

configure_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("%s API started (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)
    yield

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="ULimo shuttle booking and nightlife deals API",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["POST", "GET", "OPTIONS", "PUT", "PATCH", "DELETE"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

# Include routers
app.include_router(
    auth_router.router,
    prefix=f"{settings.API_V1_STR}/auth",
    tags=["Authentication"]
)

app.include_router(
    routes_router.router,
    prefix=f"{settings.API_V1_STR}/routes",
    tags=["Shuttle Routes"]
)

app.include_router(
    bookings_router,
    prefix=f"{settings.API_V1_STR}/bookings",
    tags=["Booking & Ticketing"]
)

app.include_router(
    wallet_router.router,
    prefix=f"{settings.API_V1_STR}/wallet",
    tags=["Wallet & Miles"]
)

app.include_router(
    wallet_router.referrals_router,
    prefix=f"{settings.API_V1_STR}/referrals",
    tags=["Wallet & Miles"]
)

app.include_router(
    deals_router,
    prefix=f"{settings.API_V1_STR}/deals",
    tags=["Nightlife Deals"]
)

app.include_router(
    functions_router,
    prefix=settings.FUNCTIONS_STR,
    tags=["Payment Functions"]
)

app.include_router(
    admin_router.router,
    prefix=f"{settings.API_V1_STR}/admin",
    tags=["Admin System"]
)

@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "ULimo API",
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
