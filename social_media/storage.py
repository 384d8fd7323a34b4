from typing import Iterable, List, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from .config import settings
from .logging_utils import log_event
from .models import AccountRow, Base, MessageRow
from .schemas import Account, AccountCredentials, Message, MessageCreate
from .security import encode_password, verify_password

# the sqlite3 driver raises these while binding parameters, outside SQLAlchemy
STORE_ERRORS = (SQLAlchemyError, OverflowError, UnicodeEncodeError)


def _engine_connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    # SQLite ignores REFERENCES unless this is set on every connection
    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_engine(url: str, **kwargs) -> Engine:
    db_engine = create_engine(url, connect_args=_engine_connect_args(url), **kwargs)
    if url.startswith("sqlite"):
        enable_sqlite_foreign_keys(db_engine)
    return db_engine


engine = create_db_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db(bind: Optional[Engine] = None) -> None:
    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Iterable[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db(db: Session) -> tuple[bool, str]:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return False, f"DB error: {e}"
    return True, "ok"


def _store_failure(db: Session, operation: str, exc: Exception) -> None:
    """Roll back and log a persistence error; callers return their absence value."""
    db.rollback()
    level = "warning" if isinstance(exc, IntegrityError) else "error"
    log_event(
        level,
        event="store_failure",
        operation=operation,
        error_type=type(exc).__name__,
        error=str(exc.orig) if getattr(exc, "orig", None) is not None else str(exc),
    )


# ---------- Account store ----------


def find_account_by_id(db: Session, account_id: int) -> Optional[Account]:
    try:
        row = db.query(AccountRow).filter(AccountRow.account_id == account_id).first()
    except STORE_ERRORS as exc:
        _store_failure(db, "find_account_by_id", exc)
        return None
    return Account.model_validate(row) if row is not None else None


def find_account_by_username(db: Session, username: str) -> Optional[Account]:
    try:
        row = db.query(AccountRow).filter(AccountRow.username == username).first()
    except STORE_ERRORS as exc:
        _store_failure(db, "find_account_by_username", exc)
        return None
    return Account.model_validate(row) if row is not None else None


def find_account_by_credentials(db: Session, username: str, password: str) -> Optional[Account]:
    """Return the account whose username and password both match."""
    account = find_account_by_username(db, username)
    if account is None or not verify_password(password, account.password):
        return None
    return account


def insert_account(db: Session, candidate: AccountCredentials) -> Optional[Account]:
    row = AccountRow(
        username=candidate.username,
        password=encode_password(candidate.password),
    )
    db.add(row)
    try:
        db.commit()
        db.refresh(row)
    except STORE_ERRORS as exc:
        _store_failure(db, "insert_account", exc)
        return None
    return Account.model_validate(row)


# ---------- Message store ----------


def list_messages(db: Session) -> List[Message]:
    # no ORDER BY: rows come back in whatever order the database yields
    try:
        rows = db.query(MessageRow).all()
    except STORE_ERRORS as exc:
        _store_failure(db, "list_messages", exc)
        return []
    return [Message.model_validate(r) for r in rows]


def find_message_by_id(db: Session, message_id: int) -> Optional[Message]:
    try:
        row = db.query(MessageRow).filter(MessageRow.message_id == message_id).first()
    except STORE_ERRORS as exc:
        _store_failure(db, "find_message_by_id", exc)
        return None
    return Message.model_validate(row) if row is not None else None


def list_messages_by_author(db: Session, account_id: int) -> List[Message]:
    try:
        rows = db.query(MessageRow).filter(MessageRow.posted_by == account_id).all()
    except STORE_ERRORS as exc:
        _store_failure(db, "list_messages_by_author", exc)
        return []
    return [Message.model_validate(r) for r in rows]


def insert_message(db: Session, candidate: MessageCreate) -> Optional[Message]:
    row = MessageRow(
        posted_by=candidate.posted_by,
        message_text=candidate.message_text,
        time_posted_epoch=candidate.time_posted_epoch,
    )
    db.add(row)
    try:
        db.commit()
        db.refresh(row)
    except STORE_ERRORS as exc:
        _store_failure(db, "insert_message", exc)
        return None
    return Message.model_validate(row)


def update_message_text(db: Session, message_id: int, message_text: str) -> bool:
    """Set ``message_text``; True only when exactly one row changed."""
    try:
        affected = (
            db.query(MessageRow)
            .filter(MessageRow.message_id == message_id)
            .update({MessageRow.message_text: message_text}, synchronize_session="fetch")
        )
        db.commit()
    except STORE_ERRORS as exc:
        _store_failure(db, "update_message_text", exc)
        return False
    return affected == 1


def delete_message(db: Session, message_id: int) -> Optional[Message]:
    """Delete a message and return the row as it was just before deletion."""
    snapshot = find_message_by_id(db, message_id)
    if snapshot is None:
        return None
    try:
        db.query(MessageRow).filter(MessageRow.message_id == message_id).delete(
            synchronize_session="fetch"
        )
        db.commit()
    except STORE_ERRORS as exc:
        _store_failure(db, "delete_message", exc)
        return None
    return snapshot
