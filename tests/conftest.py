"""Root conftest: shared test configuration."""

import os

# Ensure tests never reach a real database or image host
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "test-cloud")
os.environ.setdefault("LOG_FORMAT", "text")
