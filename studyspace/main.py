import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studyspace.config import settings
from studyspace.database import init_db
from studyspace.auth.router import router as auth_router
from studyspace.halls.router import router as halls_router
from studyspace.pricing.router import router as pricing_router
from studyspace.bookings.router import router as bookings_router
from studyspace.finances.router import router as finances_router
from studyspace.promotions.router import router as promotions_router
from studyspace.merchants.router import router as merchants_router
from studyspace.notifications.router import router as notifications_router
from studyspace.reports.router import router as reports_router
from studyspace.admin.router import router as admin_router
from studyspace.support.router import router as support_router
from studyspace.reviews.router import router as reviews_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"{settings.PROJECT_NAME} started ({settings.ENVIRONMENT})")
    yield

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Study hall and private cabin booking marketplace API",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(
    auth_router,
    prefix=f"{settings.API_V1_STR}/auth",
    tags=["Authentication"]
)

app.include_router(halls_router, prefix=settings.API_V1_STR, tags=["Study Halls & Cabins"])
app.include_router(pricing_router, prefix=settings.API_V1_STR, tags=["Pricing"])
app.include_router(bookings_router, prefix=settings.API_V1_STR, tags=["Bookings & Tickets"])
app.include_router(finances_router, prefix=settings.API_V1_STR, tags=["Finances"])
app.include_router(promotions_router, prefix=settings.API_V1_STR, tags=["Coupons, Rewards & Referrals"])
app.include_router(merchants_router, prefix=settings.API_V1_STR, tags=["Merchants"])
app.include_router(notifications_router, prefix=settings.API_V1_STR, tags=["Notifications"])
app.include_router(reports_router, prefix=settings.API_V1_STR, tags=["Reports"])
app.include_router(admin_router, prefix=settings.API_V1_STR, tags=["Admin System"])
app.include_router(support_router, prefix=settings.API_V1_STR, tags=["Call Logs & Support"])
app.include_router(reviews_router, prefix=settings.API_V1_STR, tags=["Reviews"])

@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": settings.PROJECT_NAME,
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
