import os

# ------------------------------------------------------------------------------
# Konfiguracja z env
# ------------------------------------------------------------------------------

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

SESSION_SECRET = os.getenv("SESSION_SECRET", "gift-card-validator-secret-key")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(24 * 60 * 60)))  # 24h

ENVIRONMENT = os.getenv("ENVIRONMENT", "local")
IS_PRODUCTION = ENVIRONMENT == "production"

# "memory" (domyślnie) albo "database"
CARD_STORE = os.getenv("CARD_STORE", "memory").strip().lower()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite://")

PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
