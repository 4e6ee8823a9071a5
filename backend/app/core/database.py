from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from backend.app.core.settings import get_settings


def build_engine(url: str) -> AsyncEngine:
    """Create the async engine; pool options only apply to server databases."""
    settings = get_settings()
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url=url,
        echo=False,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,  # Проверка соединения перед использованием
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_timeout=30,
    )


engine = build_engine(get_settings().db_url)
async_session = async_sessionmaker(engine, expire_on_commit=False)
