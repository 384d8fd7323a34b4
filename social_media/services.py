"""Validation and orchestration on top of the account and message stores.

Every public operation returns a record, a list, a bool or ``None``;
ordinary failures never raise. The ``*_outcome`` variants keep the
reason for a failure so it can be logged and counted.
"""

from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from . import storage
from .logging_utils import log_event
from .metrics import inc_service_result
from .results import FailureKind, Outcome
from .schemas import Account, AccountCredentials, Message, MessageCreate

MIN_PASSWORD_LENGTH = 4
MAX_MESSAGE_LENGTH = 255


class AccountLookup(Protocol):
    def exists(self, account_id: int) -> bool: ...


class AuthoredMessages(Protocol):
    def list_by_author(self, account_id: int) -> List[Message]: ...


def _collapse(operation: str, outcome: Outcome):
    if outcome.succeeded:
        inc_service_result(operation, "ok")
    else:
        inc_service_result(operation, outcome.failure.value)
        log_event(
            "info",
            event="operation_rejected",
            operation=operation,
            failure=outcome.failure.value,
            reason=outcome.reason,
        )
    return outcome.unwrap_or_none()


def _message_text_problem(message_text: str) -> Optional[str]:
    if len(message_text) == 0:
        return "message_text is empty"
    if len(message_text) > MAX_MESSAGE_LENGTH:
        return f"message_text exceeds {MAX_MESSAGE_LENGTH} characters"
    return None


class AccountService:
    """Registration, login and account lookups.

    ``messages`` is the message source behind ``messages_by_account``.
    It is usually the ``MessageService`` that depends on this instance, so
    it can only be attached after both exist; ``build_services`` does
    that. Until it is attached, ``messages_by_account`` raises
    ``RuntimeError`` while every other method works.
    """

    def __init__(self, db: Session, messages: Optional[AuthoredMessages] = None) -> None:
        self.db = db
        self.messages = messages

    def register_outcome(self, candidate: AccountCredentials) -> Outcome[Account]:
        # order matters only for the reported reason
        if len(candidate.password) < MIN_PASSWORD_LENGTH:
            return Outcome.fail(
                FailureKind.INVALID, f"password shorter than {MIN_PASSWORD_LENGTH} characters"
            )
        if len(candidate.username) == 0:
            return Outcome.fail(FailureKind.INVALID, "username is empty")
        if storage.find_account_by_username(self.db, candidate.username) is not None:
            return Outcome.fail(FailureKind.CONFLICT, "username already exists")

        account = storage.insert_account(self.db, candidate)
        if account is None:
            return Outcome.fail(FailureKind.UNAVAILABLE, "account insert failed")
        return Outcome.ok(account)

    def register(self, candidate: AccountCredentials) -> Optional[Account]:
        return _collapse("register", self.register_outcome(candidate))

    def login_outcome(self, credentials: AccountCredentials) -> Outcome[Account]:
        account = storage.find_account_by_credentials(
            self.db, credentials.username, credentials.password
        )
        if account is None:
            return Outcome.fail(FailureKind.NOT_FOUND, "no account matches credentials")
        return Outcome.ok(account)

    def login(self, credentials: AccountCredentials) -> Optional[Account]:
        return _collapse("login", self.login_outcome(credentials))

    def exists(self, account_id: int) -> bool:
        return storage.find_account_by_id(self.db, account_id) is not None

    def messages_by_account(self, account_id: int) -> List[Message]:
        if self.messages is None:
            raise RuntimeError("AccountService has no message source; use build_services()")
        return self.messages.list_by_author(account_id)


class MessageService:
    def __init__(self, db: Session, accounts: AccountLookup) -> None:
        self.db = db
        self.accounts = accounts

    def list_all(self) -> List[Message]:
        return storage.list_messages(self.db)

    def get_by_id(self, message_id: int) -> Optional[Message]:
        return storage.find_message_by_id(self.db, message_id)

    def list_by_author(self, account_id: int) -> List[Message]:
        return storage.list_messages_by_author(self.db, account_id)

    def create_outcome(self, candidate: MessageCreate) -> Outcome[Message]:
        problem = _message_text_problem(candidate.message_text)
        if problem:
            return Outcome.fail(FailureKind.INVALID, problem)
        if not self.accounts.exists(candidate.posted_by):
            return Outcome.fail(
                FailureKind.INVALID, f"posted_by {candidate.posted_by} is not an account"
            )

        message = storage.insert_message(self.db, candidate)
        if message is None:
            return Outcome.fail(FailureKind.UNAVAILABLE, "message insert failed")
        return Outcome.ok(message)

    def create(self, candidate: MessageCreate) -> Optional[Message]:
        return _collapse("create_message", self.create_outcome(candidate))

    def update_text_outcome(self, message_id: int, message_text: str) -> Outcome[Message]:
        problem = _message_text_problem(message_text)
        if problem:
            return Outcome.fail(FailureKind.INVALID, problem)
        if self.get_by_id(message_id) is None:
            return Outcome.fail(FailureKind.NOT_FOUND, f"message {message_id} does not exist")

        if not storage.update_message_text(self.db, message_id, message_text):
            return Outcome.fail(FailureKind.UNAVAILABLE, "message update affected no row")

        # read back; a concurrent delete between the write and here yields NOT_FOUND
        updated = self.get_by_id(message_id)
        if updated is None:
            return Outcome.fail(FailureKind.NOT_FOUND, f"message {message_id} vanished after update")
        return Outcome.ok(updated)

    def update_text(self, message_id: int, message_text: str) -> Optional[Message]:
        return _collapse("update_message", self.update_text_outcome(message_id, message_text))

    def delete_by_id(self, message_id: int) -> Optional[Message]:
        return storage.delete_message(self.db, message_id)


def build_services(db: Session) -> tuple[AccountService, MessageService]:
    """Wire both services over one session."""
    accounts = AccountService(db)
    messages = MessageService(db, accounts=accounts)
    accounts.messages = messages
    return accounts, messages
