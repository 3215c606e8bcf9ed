# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
import os
from pathlib import Path

from dotenv import load_dotenv

# Try multiple .env locations: next to this package, one level up, then cwd
_package_dir = Path(__file__).resolve().parent
_env_candidates = [
    _package_dir / ".env",
    _package_dir.parent / ".env",
    Path.cwd() / ".env",
]
for _env_path in _env_candidates:
    if _env_path.is_file():
        load_dotenv(_env_path)
        break
else:
    load_dotenv()

MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
MONGODB_DB = os.getenv("MONGODB_DB", "civicdesk")
JWT_SECRET = os.getenv("JWT_SECRET", "")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "2"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
EXECUTOR_WORKERS = int(os.getenv("EXECUTOR_WORKERS", "10"))
