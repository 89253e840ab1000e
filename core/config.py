import os
import logging
from dotenv import load_dotenv
from botocore.client import Config as BotoConfig
import boto3

# Load .env from project root
try:
    load_dotenv(dotenv_path=os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".env")))
except Exception:
    try:
        load_dotenv()
    except Exception:
        pass

APP_NAME = os.getenv("APP_NAME", "Afiliados IA")
FRONTEND_ORIGIN = (os.getenv("FRONTEND_ORIGIN", "").split(",")[0].strip() or "http://localhost:5173").rstrip("/")

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "").strip()

# Storage (R2)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID", "")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID", "")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY", "")
R2_BUCKET = os.getenv("R2_BUCKET", "afiliados")
R2_PUBLIC_BASE_URL = (os.getenv("R2_PUBLIC_BASE_URL", "") or "").strip().strip('"').strip("'").strip('`').rstrip("/")

MAX_FILES = int(os.getenv("MAX_FILES", "20"))

# Identity
# "code" -> login with the 8-char affiliate code
# "email+password" -> login with email and password
AFFILIATE_AUTH_STRATEGY = (os.getenv("AFFILIATE_AUTH_STRATEGY", "code") or "code").strip().lower()
AFFILIATE_JWT_SECRET = (os.getenv("AFFILIATE_JWT_SECRET", "") or os.getenv("SECRET_KEY", "") or "dev-affiliate-secret").strip()
AFFILIATE_JWT_ISSUER = os.getenv("AFFILIATE_JWT_ISSUER", "afiliados.identity")
AFFILIATE_JWT_TTL_DAYS = int(os.getenv("AFFILIATE_JWT_TTL_DAYS", "30"))

# Email
MAIL_FROM = os.getenv("MAIL_FROM", "Afiliados <no-reply@your-domain.com>")
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASS = os.getenv("SMTP_PASS", "")

# Logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
logger = logging.getLogger("afiliados")

# Static dir helper (local storage fallback)
STATIC_DIR = os.path.join(os.path.dirname(__file__), "..", "static")
STATIC_DIR = os.path.abspath(STATIC_DIR)

# Templates (emails, printable preview)
TEMPLATES_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "templates"))

# S3/R2 resource for storage operations
s3 = None

if R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY:
    s3 = boto3.resource(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=BotoConfig(signature_version="s3v4"),
        region_name="auto",
    )
