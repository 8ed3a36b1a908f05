"""Global pytest configuration."""

import os

# Set before any backend imports; settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("VECTOR_BACKEND", "memory")
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("REDIS_URL", None)
