from sqlalchemy.pool import StaticPool


def _normalize_db_url(url: str | None) -> str | None:
    # hosted postgres often hands out "postgres://...", the async engine needs "postgresql+asyncpg://..."
    if not url:
        return None
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # one shared connection keeps a ":memory:" database alive across sessions
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {"pool_pre_ping": True}
