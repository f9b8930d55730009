import os

from dotenv import load_dotenv

# Optional overrides for local test runs (e.g. a Postgres TEST_DATABASE_URL)
env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

# Tests never talk to real providers or the shared database; these must be set
# before libs.common.config is first imported.
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:"
)
os.environ["ENVIRONMENT"] = "local"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ADMIN_JWT_SECRET"] = "test-admin-secret"
for _key in (
    "PRINTIFY_API_TOKEN",
    "PRINTIFY_SHOP_ID",
    "PRINTIFY_WEBHOOK_SECRET",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
):
    os.environ[_key] = ""
