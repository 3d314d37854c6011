# database.py
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv
from paths import DATA_DIR, data_file

# Load environment variables from .env
load_dotenv()

# Make sure the Data directory exists
DATA_DIR.mkdir(exist_ok=True)

# Database URL from .env
database_url = os.getenv('DATABASE_URL', f"sqlite:///{data_file('fleetshare.db')}")

# Print configuration at startup (helpful for debugging)
print(f"Environment: {os.getenv('ENVIRONMENT', 'development')}")
print(f"Database URL: {database_url}")

def engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}  # Needed for SQLite
    return {"pool_pre_ping": True}

# Create the database engine
engine = create_engine(database_url, **engine_options(database_url))

# Create sessionmaker
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db():
    from Models import Base
    Base.metadata.create_all(bind=engine)
    print(f"Database initialized at: {database_url}")

# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
