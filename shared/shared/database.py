from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base


def get_engine(
    database_url: str,
    statement_timeout_seconds: float | None = None,
    pool_size: int = 10,
    pool_timeout_seconds: float = 10,
):
    connect_args = {}
    if statement_timeout_seconds:
        # client-side bound (asyncpg) plus server-side cancel
        connect_args["command_timeout"] = statement_timeout_seconds
        connect_args["server_settings"] = {
            "statement_timeout": str(int(statement_timeout_seconds * 1000)),
        }

    return create_async_engine(
        database_url,
        echo=False,
        future=True,
        pool_size=pool_size,
        pool_timeout=pool_timeout_seconds,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


Base = declarative_base()


def get_session(engine):
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False
    )
