"""
Tests for the account and message stores.
They run directly against SQLAlchemy sessions and check the absence
values returned when the database rejects a write.
"""

from __future__ import annotations

import json
import logging

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from social_media import storage
from social_media.models import MessageRow
from social_media.schemas import AccountCredentials, MessageCreate


def _account(db: Session, username: str = "alice", password: str = "secret"):
    account = storage.insert_account(db, AccountCredentials(username=username, password=password))
    assert account is not None
    return account


def test_insert_account_assigns_new_ids(db: Session) -> None:
    first = _account(db, "alice")
    second = _account(db, "bob")

    assert first.account_id != second.account_id
    assert storage.find_account_by_id(db, first.account_id) == first


def test_insert_account_duplicate_username_returns_none(db: Session) -> None:
    _account(db, "alice")

    duplicate = storage.insert_account(db, AccountCredentials(username="alice", password="other"))

    assert duplicate is None
    # session is usable after the rollback
    assert storage.find_account_by_username(db, "alice") is not None


def test_find_account_by_credentials_requires_both_fields(db: Session) -> None:
    account = _account(db, "alice", "secret")

    assert storage.find_account_by_credentials(db, "alice", "secret") == account
    assert storage.find_account_by_credentials(db, "alice", "Secret") is None
    assert storage.find_account_by_credentials(db, "nobody", "secret") is None


def test_find_missing_rows_return_none(db: Session) -> None:
    assert storage.find_account_by_id(db, 99) is None
    assert storage.find_account_by_username(db, "ghost") is None
    assert storage.find_message_by_id(db, 99) is None


def test_insert_message_with_unknown_author_returns_none(db: Session) -> None:
    message = storage.insert_message(
        db, MessageCreate(posted_by=42, message_text="hi", time_posted_epoch=1)
    )

    assert message is None
    assert storage.list_messages(db) == []


def test_list_messages_by_author_filters_rows(db: Session) -> None:
    alice = _account(db, "alice")
    bob = _account(db, "bob")
    for author, text in ((alice, "a1"), (bob, "b1"), (alice, "a2")):
        storage.insert_message(
            db, MessageCreate(posted_by=author.account_id, message_text=text, time_posted_epoch=10)
        )

    texts = {m.message_text for m in storage.list_messages_by_author(db, alice.account_id)}

    assert texts == {"a1", "a2"}
    assert len(storage.list_messages(db)) == 3
    assert storage.list_messages_by_author(db, 999) == []


def test_update_message_text_reports_affected_row(db: Session) -> None:
    alice = _account(db)
    message = storage.insert_message(
        db, MessageCreate(posted_by=alice.account_id, message_text="old", time_posted_epoch=5)
    )

    assert storage.update_message_text(db, message.message_id, "new") is True
    assert storage.find_message_by_id(db, message.message_id).message_text == "new"
    assert storage.update_message_text(db, 12345, "new") is False


def test_delete_message_returns_snapshot(db: Session) -> None:
    alice = _account(db)
    message = storage.insert_message(
        db, MessageCreate(posted_by=alice.account_id, message_text="bye", time_posted_epoch=5)
    )

    deleted = storage.delete_message(db, message.message_id)

    assert deleted == message
    assert storage.find_message_by_id(db, message.message_id) is None
    assert storage.delete_message(db, message.message_id) is None


def test_check_db_reports_ok(db: Session) -> None:
    assert storage.check_db(db) == (True, "ok")


def _store_failures(caplog: pytest.LogCaptureFixture) -> list[tuple[int, dict]]:
    failures = []
    for record in caplog.records:
        if not record.name.startswith("social_media"):
            continue
        payload = json.loads(record.getMessage())
        if payload.get("event") == "store_failure":
            failures.append((record.levelno, payload))
    return failures


def test_integrity_failure_is_logged_as_warning(
    db: Session, caplog: pytest.LogCaptureFixture
) -> None:
    _account(db, "alice")
    caplog.clear()

    with caplog.at_level(logging.INFO, logger="social_media"):
        storage.insert_account(db, AccountCredentials(username="alice", password="other"))

    [(level, payload)] = _store_failures(caplog)
    assert level == logging.WARNING
    assert payload["level"] == "warning"
    assert payload["operation"] == "insert_account"
    assert payload["error_type"] == "IntegrityError"


def test_database_error_is_logged_as_error(
    engine: Engine, db: Session, caplog: pytest.LogCaptureFixture
) -> None:
    MessageRow.__table__.drop(engine)

    with caplog.at_level(logging.INFO, logger="social_media"):
        assert storage.list_messages(db) == []
        assert storage.find_message_by_id(db, 1) is None

    failures = _store_failures(caplog)
    assert [p["operation"] for _, p in failures] == ["list_messages", "find_message_by_id"]
    assert all(level == logging.ERROR for level, _ in failures)
    assert failures[0][1]["error_type"] == "OperationalError"


def test_out_of_range_integers_return_absence(
    db: Session, caplog: pytest.LogCaptureFixture
) -> None:
    alice = _account(db)
    huge = 2**70

    with caplog.at_level(logging.INFO, logger="social_media"):
        assert storage.find_account_by_id(db, huge) is None
        assert storage.find_message_by_id(db, huge) is None
        assert storage.list_messages_by_author(db, huge) == []
        assert storage.update_message_text(db, huge, "text") is False
        assert storage.delete_message(db, huge) is None
        unbound = MessageCreate.model_construct(
            posted_by=alice.account_id, message_text="hi", time_posted_epoch=huge
        )
        assert storage.insert_message(db, unbound) is None

    assert {p["error_type"] for _, p in _store_failures(caplog)} == {"OverflowError"}
    # the session is still usable afterwards
    assert storage.find_account_by_id(db, alice.account_id) == alice


def test_unencodable_text_returns_absence(db: Session) -> None:
    _account(db, "alice", "secret")
    lone_surrogate = "\ud800"

    assert storage.find_account_by_username(db, lone_surrogate) is None
    assert storage.find_account_by_credentials(db, lone_surrogate, "secret") is None
    assert storage.find_account_by_credentials(db, "alice", lone_surrogate) is None
    unbound = AccountCredentials.model_construct(username=lone_surrogate, password="secret")
    assert storage.insert_account(db, unbound) is None
