# main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from database import init_db
from Services.car_router import router as car_router
from Services.member_router import router as member_router
from Services.reservation_router import router as reservation_router
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()

# Create FastAPI app
app = FastAPI(
    title="FleetShare API",
    description="""
    API for booking shared cars, including:
    - Single, multi-day and whole-day reservations
    - Recurring reservations (weekly and monthly series)
    - Scoped edits and deletes of series occurrences
    - Fleet and member management
    """,
    version="1.0.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception handler for detailed error messages
@app.exception_handler(Exception)
async def debug_exception_handler(request: Request, exc: Exception):
    logger.error(f"Error processing request: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "type": type(exc).__name__}
    )

# Include routers
app.include_router(
    member_router,
    prefix="/api/members",
    tags=["members"]
)

app.include_router(
    car_router,
    prefix="/api/cars",
    tags=["cars"]
)

app.include_router(
    reservation_router,
    prefix="/api/reservations",
    tags=["reservations"]
)

# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}", exc_info=True)
        raise

@app.get("/")
async def root():
    return {
        "message": "Welcome to FleetShare API",
        "version": "1.0.0",
        "docs_url": "/docs",
        "redoc_url": "/redoc"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
