"""Tests for the upsert engine."""

import threading
import time
from datetime import date
from unittest.mock import MagicMock

from etl.load import UpsertEngine, load_enrollments, load_students
from etl.records import CanonicalEnrollment, CanonicalStudent


def _student(email="rahul@uni.edu", first_name="Rahul", year=3):
    return CanonicalStudent(
        first_name=first_name,
        last_name="Sharma",
        email=email,
        date_of_birth=date(2004, 7, 15),
        year=year,
        phone_number="+91-5551234567",
        department_id=1,
    )


def test_upserting_same_email_twice_keeps_one_row_with_latest_values(store) -> None:
    result = load_students([_student(first_name="Rahul", year=2)], store)
    assert result.loaded == 1

    result = load_students([_student(first_name="Rahul K", year=3)], store)
    assert result.loaded == 1

    assert store.counts()["students"] == 1
    stored = store.student_rows["rahul@uni.edu"]["record"]
    assert (stored.first_name, stored.year) == ("Rahul K", 3)


def test_different_emails_make_two_rows(store) -> None:
    result = load_students([_student("a@uni.edu"), _student("b@uni.edu")], store, workers=2)
    assert result.loaded == 2
    assert store.counts()["students"] == 2


def test_failed_record_is_counted_and_others_still_load(store) -> None:
    store.fail_emails.add("bad@uni.edu")
    result = load_students(
        [_student("a@uni.edu"), _student("bad@uni.edu"), _student("c@uni.edu")], store, workers=3
    )

    assert (result.attempted, result.loaded, result.failed) == (3, 2, 1)
    assert result.errors == [("bad@uni.edu", "check constraint violated")]
    assert set(store.student_rows) == {"a@uni.edu", "c@uni.edu"}


def test_enrollment_upsert_overwrites_grade_and_date(store) -> None:
    first = CanonicalEnrollment(student_id=7, course_id="CS101", grade=None, enrollment_date=date(2024, 1, 1))
    second = CanonicalEnrollment(student_id=7, course_id="CS101", grade="A", enrollment_date=date(2024, 2, 1))

    load_enrollments([first], store)
    result = load_enrollments([second], store)

    assert result.loaded == 1
    assert store.counts()["enrollments"] == 1
    assert store.enrollment_rows[(7, "CS101")]["record"].grade == "A"


def test_empty_batch_does_not_touch_store() -> None:
    upsert = MagicMock()
    result = UpsertEngine(upsert, key=lambda r: r).load([])
    assert (result.attempted, result.loaded) == (0, 0)
    upsert.assert_not_called()


def test_slow_record_is_counted_as_timed_out_not_failed() -> None:
    release = threading.Event()

    def upsert(record):
        if record == "slow":
            release.wait(0.5)
        return 1

    engine = UpsertEngine(upsert, key=lambda r: r, workers=2, record_timeout=0.05)
    result = engine.load(["slow", "fast"])
    release.set()

    assert result.loaded == 1
    assert result.failed == 0
    assert result.timed_out == 1
    assert result.errors[0][0] == "slow"
    assert "timed out" in result.errors[0][1]


def test_cancellation_skips_records_not_yet_started() -> None:
    cancel = threading.Event()
    started = []

    def upsert(record):
        started.append(record)
        cancel.set()
        time.sleep(0.05)
        return 1

    engine = UpsertEngine(upsert, key=lambda r: r, workers=1, cancel_event=cancel)
    result = engine.load(list(range(10)))

    assert started == [0]
    assert (result.loaded, result.skipped) == (1, 9)


def test_expired_deadline_writes_nothing_new() -> None:
    upsert = MagicMock(return_value=1)
    engine = UpsertEngine(upsert, key=lambda r: r, workers=1, deadline=time.monotonic() - 1)
    result = engine.load([1, 2, 3])

    assert (result.loaded, result.skipped) == (0, 3)
    upsert.assert_not_called()
