import os
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./motorcover.db")
SQLITE_TIMEOUT = float(os.getenv("MOTORCOVER_SQLITE_TIMEOUT", "30"))
DB_ECHO = os.getenv("MOTORCOVER_DB_ECHO", "0") == "1"

IS_SQLITE = DATABASE_URL.startswith("sqlite")

# SQLite needs this flag when used with threads in FastAPI
connect_args = {"check_same_thread": False, "timeout": SQLITE_TIMEOUT} if IS_SQLITE else {}

engine = create_engine(DATABASE_URL, echo=DB_ECHO, future=True, connect_args=connect_args)

if IS_SQLITE:
    # pysqlite defers BEGIN until the first write, so two sessions can both hold
    # a read lock and then deadlock on upgrade. Take the write lock up front and
    # let the busy timeout queue concurrent writers instead.
    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

Base = declarative_base()

# Dependency for FastAPI routes
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
