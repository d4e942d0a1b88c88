import os
import tempfile

# must be set before app.core.config is imported
_DB_DIR = tempfile.mkdtemp(prefix="retro-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'catalog.db')}"
os.environ["STORE_BACKEND"] = "memory"
os.environ["APP_ENV"] = "test"
os.environ.pop("REDIS_URL", None)
