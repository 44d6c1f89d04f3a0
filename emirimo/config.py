"""Environment configuration.

Values are read once at import time. A local ``.env`` file is honoured when
present so development setups do not need to export variables by hand.
"""
import os

from dotenv import load_dotenv

load_dotenv()

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "emirimo")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_TTL = int(os.getenv("JWT_TTL", "604800"))
PW_SALT = os.getenv("PW_SALT", "static-salt")

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
RATE_LIMIT_PER_MIN = int(os.getenv("RATE_LIMIT_PER_MIN", "300"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")

# Certificates
CERTIFICATES_DIR = os.getenv("CERTIFICATES_DIR", os.path.join(os.getcwd(), "certificates"))
CERT_ID_SALT = os.getenv("CERT_ID_SALT", "emirimo-certificates")
CERT_S3_BUCKET = os.getenv("CERT_S3_BUCKET") or None
CERT_S3_ENDPOINT = os.getenv("CERT_S3_ENDPOINT") or None
CERT_S3_REGION = os.getenv("CERT_S3_REGION", "us-east-1")
CERT_PUBLIC_BASE_URL = os.getenv("CERT_PUBLIC_BASE_URL") or None
API_BASE_URL = os.getenv("API_BASE_URL", "").rstrip("/")

# Real-time
ADMIN_ROOM = os.getenv("ADMIN_ROOM", "admin-dashboard")


def skip_bootstrap() -> bool:
    return bool(os.getenv("SKIP_BOOTSTRAP"))
