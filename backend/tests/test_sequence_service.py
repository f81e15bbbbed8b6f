"""
Sequence generator tests.

Verifies:
- Counters start at 1 and increase by one per allocation
- Concurrent allocations for one name never return the same value
- Document numbers are scoped per type and day
- Store failures surface as SequenceAllocationFailure
"""

import threading
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from clinicstock import create_app
from clinicstock.errors import SequenceAllocationFailure, StoreUnavailable, ValidationError
from clinicstock.extensions import db
from clinicstock.models import Counter
from clinicstock.services import sequence_service

from conftest import TEST_CONFIG


class TestNextValue:

    def test_first_value_is_one(self, db_session):
        assert sequence_service.next_value("restock-20260104") == 1
        assert sequence_service.next_value("restock-20260104") == 2
        assert sequence_service.peek_value("restock-20260104") == 2

    def test_counters_are_independent(self, db_session):
        sequence_service.next_value("a")
        sequence_service.next_value("a")
        assert sequence_service.next_value("b") == 1

    def test_peek_missing_counter(self, db_session):
        assert sequence_service.peek_value("never-used") == 0

    def test_uncommitted_allocation_rolls_back_with_caller(self, db_session):
        sequence_service.next_value("adjustment-x")
        sequence_service.next_value("adjustment-x", commit=False)
        db_session.rollback()
        assert sequence_service.peek_value("adjustment-x") == 1

    def test_empty_name_rejected(self, db_session):
        with pytest.raises(ValidationError):
            sequence_service.next_value("")

    def test_store_failure_is_classified(self, db_session, monkeypatch):
        def boom(name):
            raise OperationalError("UPDATE counters", {}, Exception("database is locked"))

        monkeypatch.setattr(sequence_service, "_increment", boom)
        with pytest.raises(SequenceAllocationFailure) as exc_info:
            sequence_service.next_value("restock-x")
        assert isinstance(exc_info.value, StoreUnavailable)
        assert exc_info.value.status_code == 503
        assert exc_info.value.counter_name == "restock-x"


class TestDocumentNumbers:

    def test_format(self):
        assert sequence_service.format_document_number("RST", 7, date(2026, 1, 4)) == "RST-20260104-0007"
        assert sequence_service.format_document_number("BATCH", 12345, date(2026, 1, 4)) == "BATCH-20260104-12345"

    def test_counter_scoped_per_day(self, db_session):
        first = sequence_service.next_document_number(document_type="restock", prefix="RST", on=date(2026, 1, 4))
        other_day = sequence_service.next_document_number(document_type="restock", prefix="RST", on=date(2026, 1, 5))
        second = sequence_service.next_document_number(document_type="restock", prefix="RST", on=date(2026, 1, 4))
        assert first == "RST-20260104-0001"
        assert other_day == "RST-20260105-0001"
        assert second == "RST-20260104-0002"
        assert sequence_service.counter_name_for("restock", date(2026, 1, 4)) == "restock-20260104"

    def test_prefix_required(self, db_session):
        with pytest.raises(ValidationError):
            sequence_service.next_document_number(document_type="restock", prefix="")


class TestConcurrency:
    """Threads share one SQLite file; each allocates through its own connection."""

    @pytest.fixture
    def file_app(self, tmp_path):
        app = create_app({
            **TEST_CONFIG,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'sequences.sqlite3'}",
            'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"timeout": 30, "check_same_thread": False}},
        })
        with app.app_context():
            db.create_all()
            db.session.add(Counter(name="restock-concurrent", value=0))
            db.session.commit()
            db.session.remove()
        yield app
        with app.app_context():
            db.drop_all()
            db.engine.dispose()

    def test_concurrent_allocations_are_unique(self, file_app):
        threads_count = 8
        per_thread = 25
        results = []
        errors = []
        lock = threading.Lock()

        def worker():
            try:
                with file_app.app_context():
                    values = [sequence_service.next_value("restock-concurrent") for _ in range(per_thread)]
                    db.session.remove()
                with lock:
                    results.extend(values)
            except Exception as exc:  # surfaced through the errors list below
                with lock:
                    errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(threads_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(results) == threads_count * per_thread
        assert len(set(results)) == len(results)
        assert sorted(results) == list(range(1, threads_count * per_thread + 1))
