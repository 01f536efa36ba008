from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import DATABASE_URL


def use_immediate_transactions(bind: Engine) -> Engine:
    """Take SQLite's write lock when a transaction begins, not at the first write.

    pysqlite defers BEGIN until the first DML statement, so two sessions can
    read the same row before either writes. Starting with BEGIN IMMEDIATE
    serializes writers the way row locks do on server databases.
    """

    @event.listens_for(bind, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(bind, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return bind


def build_engine(url: str = DATABASE_URL) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, echo=False, future=True)
    bind = create_engine(
        url,
        echo=False,
        future=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    return use_immediate_transactions(bind)


engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
