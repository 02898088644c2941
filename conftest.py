import os

# Load .env.dev for tests when present; otherwise run against SQLite
from dotenv import load_dotenv

env_dev_path = os.path.join(os.path.dirname(__file__), ".env.dev")
if os.path.exists(env_dev_path):
    load_dotenv(env_dev_path, override=True)

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./store-test.db")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "whsec_test")

from libs.common.config import get_settings  # noqa: E402

# Clear cached settings to reload with new env vars
get_settings.cache_clear()
