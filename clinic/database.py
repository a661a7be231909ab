"""
数据库配置 - 持久化层
数据库是唯一可信数据源，请求之间不缓存预订/可用性状态
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from clinic.config import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

_connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}

_engine_kwargs = {"connect_args": _connect_args}
if ":memory:" in SQLALCHEMY_DATABASE_URL:
    # 内存库只能共享同一个连接
    _engine_kwargs["poolclass"] = StaticPool

engine = create_engine(SQLALCHEMY_DATABASE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """依赖注入：获取数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """初始化数据库表"""
    from clinic.models import ontology  # noqa
    Base.metadata.create_all(bind=engine)
