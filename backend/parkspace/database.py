from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings, get_settings


def _engine_options(settings: Settings) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.echo_sql, "pool_pre_ping": True}
    if settings.database_url.startswith("postgresql+asyncpg"):
        options["pool_recycle"] = 1800
        options["connect_args"] = {"server_settings": {"application_name": "parkspace", "timezone": "UTC"}}
    return options


settings = get_settings()

engine = create_async_engine(settings.database_url, **_engine_options(settings))

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
