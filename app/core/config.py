import os

# Detect environment (default to production)
APP_ENV = os.getenv("APP_ENV", "production").lower()

DATABASE_URL = os.getenv("DATABASE_URL", "")
REDIS_URL = os.getenv("REDIS_URL")

# "memory" keeps live boards in process, "redis" shares them across workers
STORE_BACKEND = os.getenv("STORE_BACKEND", "memory").lower()
STORE_NAMESPACE = os.getenv("STORE_NAMESPACE", "retro")

DEFAULT_VOTES_PER_USER = int(os.getenv("DEFAULT_VOTES_PER_USER", "5"))
DEFAULT_COLUMNS = ["To Do", "In Progress", "Done"]

DEV_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
