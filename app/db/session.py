from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings

_url = make_url(settings.DATABASE_URL)
engine_kwargs = {"pool_pre_ping": True}
connect_args = {}
if _url.get_backend_name().startswith("postgresql"):
    connect_args["options"] = "-c timezone=utc"
elif _url.get_backend_name() == "sqlite":
    connect_args["check_same_thread"] = False
    if _url.database in (None, "", ":memory:"):
        # One shared connection so every session sees the same in-memory schema
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
