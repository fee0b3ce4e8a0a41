# stationsportal/utils/upsert.py
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from stationsportal.core.exceptions import StorageError


def dialect_insert(db: AsyncSession, model):
    """
    INSERT construct for the session's dialect, exposing
    on_conflict_do_update / on_conflict_do_nothing.
    """
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise StorageError(f"ON CONFLICT upserts are not supported on {name}")


def storage_message(exc: Exception) -> str:
    return str(getattr(exc, "orig", None) or exc)
