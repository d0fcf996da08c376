import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./prohealth.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

# Frontend base URL (CORS + redirects)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "kes")
# Smallest chargeable amount in minor units (cents)
STRIPE_MIN_AMOUNT_MINOR = int(os.getenv("STRIPE_MIN_AMOUNT_MINOR", "50"))

# M-Pesa (Safaricom Daraja) Configuration
MPESA_ENVIRONMENT = os.getenv("MPESA_ENVIRONMENT", "sandbox")  # sandbox or production
MPESA_CONSUMER_KEY = os.getenv("MPESA_CONSUMER_KEY")
MPESA_CONSUMER_SECRET = os.getenv("MPESA_CONSUMER_SECRET")
MPESA_SHORTCODE = os.getenv("MPESA_SHORTCODE")
MPESA_PASSKEY = os.getenv("MPESA_PASSKEY")
MPESA_TRANSACTION_TYPE = os.getenv("MPESA_TRANSACTION_TYPE", "CustomerPayBillOnline")
# Public base URL Safaricom can reach (ngrok in local development)
MPESA_CALLBACK_BASE_URL = os.getenv("MPESA_CALLBACK_BASE_URL", "http://localhost:8000")
MPESA_MIN_AMOUNT = int(os.getenv("MPESA_MIN_AMOUNT", "1"))
MPESA_HTTP_TIMEOUT = float(os.getenv("MPESA_HTTP_TIMEOUT", "30"))

# Google Gemini Configuration (AI health assistant)
GOOGLE_GEMINI_API_KEY = os.getenv("GOOGLE_GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_HTTP_TIMEOUT = float(os.getenv("GEMINI_HTTP_TIMEOUT", "30"))

# AI insight rate limiting (per user, in-memory)
AI_RATE_LIMIT = int(os.getenv("AI_RATE_LIMIT", "5"))
AI_RATE_LIMIT_WINDOW_MS = int(os.getenv("AI_RATE_LIMIT_WINDOW_MS", "60000"))
