from estate_api.core.config import settings
from estate_api.core.database import get_db, Base, get_engine

__all__ = ["settings", "get_db", "Base", "get_engine"]
