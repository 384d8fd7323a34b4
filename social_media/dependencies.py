"""FastAPI dependency factories for the services.

Each request gets services bound to its own session from ``get_db``, so
tests only need to override ``get_db``.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from .services import AccountService, MessageService, build_services
from .storage import get_db


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    accounts, _ = build_services(db)
    return accounts


def get_message_service(db: Session = Depends(get_db)) -> MessageService:
    _, messages = build_services(db)
    return messages
