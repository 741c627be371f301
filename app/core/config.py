import os

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./anchor.db")

# Auth (tokens are valid for 30 days, same as the web app session)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 30)))

# Client workflow
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000/api/v1")
AUTOSAVE_DELAY_SECONDS = float(os.getenv("AUTOSAVE_DELAY_SECONDS", "3"))
CLIENT_CACHE_TTL_SECONDS = int(os.getenv("CLIENT_CACHE_TTL_SECONDS", "60"))
CLIENT_CACHE_MAXSIZE = int(os.getenv("CLIENT_CACHE_MAXSIZE", "100"))
