"""Global pytest configuration."""

import os

# Set DATABASE_URL for tests before any imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Provider credentials stay empty unless a test opts in
for _key in ("AMADEUS_CLIENT_ID", "AMADEUS_CLIENT_SECRET", "KIWI_API_KEY", "SERPER_API_KEY", "TAVILY_API_KEY"):
    os.environ.setdefault(_key, "")
