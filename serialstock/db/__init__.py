from serialstock.db.base import Base
from serialstock.db.session import AsyncSessionLocal, get_session

__all__ = ["Base", "AsyncSessionLocal", "get_session"]
