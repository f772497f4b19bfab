import os

# =========================
# Database
# =========================

# SQLAlchemy connection string. SQLite is enough for a single-user session.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./grocery.db")

# =========================
# Messaging
# =========================

# When unset, domain events are only written to the log.
RABBITMQ_HOST = os.getenv("RABBITMQ_HOST")
RABBITMQ_CONNECT_ATTEMPTS = int(os.getenv("RABBITMQ_CONNECT_ATTEMPTS", "5"))
EVENTS_EXCHANGE = os.getenv("EVENTS_EXCHANGE", "events")
START_CONSUMER = os.getenv("START_CONSUMER", "0").strip() in {"1", "true", "True", "YES", "yes"}

# =========================
# Catalog
# =========================

# Base URL of a remote catalog service. When unset the bundled sample catalog is used.
CATALOG_URL = os.getenv("CATALOG_URL")
CATALOG_TIMEOUT_SECONDS = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "8"))

# =========================
# Session & pricing policy
# =========================

DEFAULT_USER_ID = os.getenv("DEFAULT_USER_ID", "default_user")

FREE_DELIVERY_THRESHOLD = float(os.getenv("FREE_DELIVERY_THRESHOLD", "499"))
DELIVERY_FEE = float(os.getenv("DELIVERY_FEE", "49"))
PLATFORM_FEE = float(os.getenv("PLATFORM_FEE", "5"))
DEFAULT_PAYMENT_METHOD_ID = "cod"

ESTIMATED_DELIVERY_HOURS = int(os.getenv("ESTIMATED_DELIVERY_HOURS", "24"))
