import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./selfiepro.db")

# Gemini REST API (receipt analysis + image composition)
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta")
VISION_MODEL = os.getenv("VISION_MODEL", "gemini-2.5-flash")
IMAGE_MODEL = os.getenv("IMAGE_MODEL", "gemini-3-pro-image-preview")
VISION_TIMEOUT_SECONDS = float(os.getenv("VISION_TIMEOUT_SECONDS", "60"))
COMPOSE_TIMEOUT_SECONDS = float(os.getenv("COMPOSE_TIMEOUT_SECONDS", "120"))

# Accepted deviation (in PKR) between the plan price and the amount on the receipt
AMOUNT_TOLERANCE = int(os.getenv("AMOUNT_TOLERANCE", "100"))
CURRENCY = os.getenv("CURRENCY", "PKR")

ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "change-me")

GENERATION_RETENTION_HOURS = int(os.getenv("GENERATION_RETENTION_HOURS", "24"))
RETENTION_SWEEP_INTERVAL_SECONDS = float(os.getenv("RETENTION_SWEEP_INTERVAL_SECONDS", "3600"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Purchase tracking pixels (empty = disabled)
FACEBOOK_PIXEL_ID = os.getenv("FACEBOOK_PIXEL_ID", "")
TIKTOK_PIXEL_ID = os.getenv("TIKTOK_PIXEL_ID", "")
