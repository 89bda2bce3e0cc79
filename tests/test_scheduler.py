from contextlib import contextmanager
from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

import scheduler
from models import Call, Conversation, TypingIndicator


@pytest.fixture
def use_test_db(monkeypatch, test_db):
    @contextmanager
    def _context():
        yield test_db

    monkeypatch.setattr(scheduler, "get_db_context", _context)
    monkeypatch.setattr("routers.calls.service.publish_event_sync", Mock(return_value=True))


def test_sweep_marks_stale_ringing_calls_missed(use_test_db, test_db, current_user, other_user):
    stale = Call(
        caller_id=current_user.account_id,
        callee_id=other_user.account_id,
        created_at=datetime.utcnow() - timedelta(minutes=2),
    )
    fresh = Call(caller_id=other_user.account_id, callee_id=current_user.account_id)
    test_db.add_all([stale, fresh])
    test_db.commit()

    scheduler.sweep_unanswered_calls()

    test_db.refresh(stale)
    test_db.refresh(fresh)
    assert stale.status == "missed"
    assert fresh.status == "ringing"


def test_purge_removes_stale_typing_rows(use_test_db, test_db, current_user):
    conversation = Conversation()
    test_db.add(conversation)
    test_db.flush()
    test_db.add(
        TypingIndicator(
            conversation_id=conversation.id,
            user_id=current_user.account_id,
            is_typing=True,
            updated_at=datetime.utcnow() - timedelta(minutes=5),
        )
    )
    test_db.commit()

    scheduler.purge_typing_indicators()

    assert test_db.query(TypingIndicator).count() == 0


def test_database_errors_do_not_escape_jobs(monkeypatch):
    @contextmanager
    def _broken():
        raise OperationalError("SELECT 1", {}, Exception("database is down"))
        yield

    monkeypatch.setattr(scheduler, "get_db_context", _broken)

    scheduler.sweep_unanswered_calls()
    scheduler.purge_typing_indicators()


def test_start_registers_jobs_once():
    scheduler.start_scheduler()
    try:
        scheduler.start_scheduler()
        job_ids = sorted(job.id for job in scheduler.scheduler.get_jobs())
        assert job_ids == ["purge_typing_indicators", "sweep_unanswered_calls"]
    finally:
        scheduler.stop_scheduler()
