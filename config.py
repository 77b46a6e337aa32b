import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
PORT = int(os.getenv("PORT", "6005"))
APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

TOKEN_COOKIE = "token"
MIN_PASSWORD_LENGTH = 6


def is_production() -> bool:
    return APP_ENV == "production"


def insecure_defaults() -> list:
    """Names of settings still running on their development defaults."""
    unset = []
    if "JWT_SECRET" not in os.environ:
        unset.append("JWT_SECRET")
    if "DATABASE_URL" not in os.environ:
        unset.append("DATABASE_URL")
    return unset
