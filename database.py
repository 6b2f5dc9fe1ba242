import logging
from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database

from config import settings

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db: Optional[Database] = None

try:
    _client = MongoClient(settings.DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = _client[settings.DATABASE_NAME]
except Exception as e:
    logger.error("Database not configured: %s", e)
    db = None


def get_db() -> Optional[Database]:
    return db
