"""SQLModel engine singleton for the settings database."""
from sqlmodel import SQLModel, create_engine

from bucketsync.config import get_settings

_engine = None


def get_engine():
    """Return the module-level engine, creating it on first call."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},  # SQLite only
        )
        init_db(_engine)
    return _engine


def init_db(engine) -> None:
    """Create the settings table if it does not exist yet."""
    # Import models so metadata is populated before create_all
    from bucketsync.models.setting import Setting  # noqa
    SQLModel.metadata.create_all(engine)
