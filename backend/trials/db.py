# backend/trials/db.py

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

from .core.config import get_settings


def engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        # таблица результатов читает каталог, участников и попытки
        # несколькими SELECT: все они должны видеть один снимок БД
        return {"pool_pre_ping": True, "isolation_level": "REPEATABLE READ"}

    options = {
        # FastAPI гоняет sync-ручки в пуле потоков
        "connect_args": {"check_same_thread": False},
    }
    if url in ("sqlite://", "sqlite:///:memory:"):
        # одна общая in-memory база на весь процесс
        options["poolclass"] = StaticPool
    return options


def make_engine(url: str):
    options = engine_options(url)
    engine = create_engine(url, **options)
    if not url.startswith("sqlite"):
        return engine

    in_memory = "poolclass" in options

    # pysqlite сам не шлёт BEGIN перед SELECT: включаем явные транзакции,
    # чтобы таблица результатов читалась из одного снимка БД
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            # табло читает, пока судьи пишут
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


engine = make_engine(get_settings().DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Базовый класс для моделей SQLAlchemy."""
    pass


def get_db():
    """Зависимость FastAPI для получения сессии БД."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
