import os
import secrets
from typing import List

from dotenv import load_dotenv

from logger import logger

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


# Tokens
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    # Tokens will not survive a restart with a generated key
    SECRET_KEY = secrets.token_hex(32)
    logger.warning("No SECRET_KEY found in environment. Using a generated key; set one in .env for production.")

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 7 * 24 * 60))
BCRYPT_ROUNDS = 12

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./todo.db")
SQL_ECHO = _env_bool("SQL_ECHO")

# Uploads
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads")
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", 10 * 1024 * 1024))
MAX_FILES_PER_UPLOAD = 5

# HTTP
CORS_ORIGINS: List[str] = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
