import os

# Environment
APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "devcamper")

# Auth
SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", 24 * 60))

# Geocoder
GEOCODER_PROVIDER = os.getenv("GEOCODER_PROVIDER", "mapquest")
GEOCODER_API_KEY = os.getenv("GEOCODER_API_KEY")

# Uploads
FILE_UPLOAD_PATH = os.getenv("FILE_UPLOAD_PATH", "./public/uploads")
MAX_FILE_UPLOAD = int(os.getenv("MAX_FILE_UPLOAD", 1000000))


def is_production() -> bool:
    return APP_ENV == "production"
