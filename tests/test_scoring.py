"""Tests for the ledger and the scoring facade against a real database."""

import threading

import pytest
from sqlalchemy import func, select

from backend.trials.core.errors import (
    AttemptNotFound,
    Blocked,
    CompetitorNotFound,
    CourseComplete,
    DuplicateAttempt,
    SectionNotFound,
)
from backend.trials.db import SessionLocal
from backend.trials.models import Attempt
from backend.trials.services import catalog, ledger, scoring
from backend.trials.services.ledger import Outcome

from conftest import add_competitor


def count_attempts(db):
    db.rollback()
    return db.scalar(select(func.count()).select_from(Attempt))


class TestOutcome:

    def test_penalty_values(self):
        assert Outcome.penalty(5).points == 5
        with pytest.raises(ValueError):
            Outcome.penalty(4)

    def test_dnf_has_no_points(self):
        outcome = Outcome.dnf()
        assert outcome.is_dnf and outcome.points is None
        with pytest.raises(ValueError):
            Outcome(points=1, is_dnf=True)

    def test_empty_outcome_rejected(self):
        with pytest.raises(ValueError):
            Outcome()


class TestLedger:

    def test_record_sets_created_not_updated(self, db, event):
        rider = add_competitor(db, 1, "Rider", event["advanced"])
        a = ledger.record_attempt(db, rider.id, event["s1"], 1, Outcome.penalty(2))
        db.commit()
        assert a.id is not None
        assert a.created_at is not None
        assert a.updated_at is None

    def test_duplicate_triple_refused(self, db, event):
        rider = add_competitor(db, 1, "Rider", event["advanced"])
        ledger.record_attempt(db, rider.id, event["s1"], 1, Outcome.penalty(2))
        db.commit()
        with pytest.raises(DuplicateAttempt):
            ledger.record_attempt(db, rider.id, event["s1"], 1, Outcome.penalty(0))

    def test_unique_constraint_is_backstop(self, db, event, monkeypatch):
        rider = add_competitor(db, 1, "Rider", event["advanced"])
        ledger.record_attempt(db, rider.id, event["s1"], 1, Outcome.penalty(2))
        db.commit()

        # pretend the pre-check lost a race
        monkeypatch.setattr(ledger, "_find", lambda *args: None)
        with pytest.raises(DuplicateAttempt):
            ledger.record_attempt(db, rider.id, event["s1"], 1, Outcome.penalty(0))
        db.rollback()
        assert count_attempts(db) == 1

    def test_correct_unknown(self, db, event):
        with pytest.raises(AttemptNotFound):
            ledger.correct_attempt(db, 999, Outcome.penalty(1))

    def test_remove_unknown(self, db, event):
        with pytest.raises(AttemptNotFound):
            ledger.remove_attempt(db, 999)

    def test_list_projections(self, db, event):
        a = add_competitor(db, 1, "A", event["advanced"])
        b = add_competitor(db, 2, "B", event["advanced"])
        ledger.record_attempt(db, a.id, event["s1"], 1, Outcome.penalty(1))
        ledger.record_attempt(db, b.id, event["s1"], 1, Outcome.penalty(2))
        ledger.record_attempt(db, a.id, event["s2"], 1, Outcome.dnf())
        db.commit()

        assert len(ledger.list_all(db)) == 3
        assert {x.competitor_id for x in ledger.list_by_section(db, event["s1"])} == {a.id, b.id}
        assert [x.section_id for x in ledger.list_by_competitor(db, a.id)] == [event["s1"], event["s2"]]


class TestSubmit:

    def test_laps_assigned_in_order(self, db, event, notifier):
        rider = add_competitor(db, 7, "Seven", event["advanced"])
        laps = []
        for section in ("s1", "s2", "s3", "s1", "s2", "s3"):
            a = scoring.submit_attempt(db, rider.id, event[section], Outcome.penalty(0), notifier=notifier)
            laps.append(a.lap)
        assert laps == [1, 1, 1, 2, 2, 2]
        assert notifier.kinds == ["created"] * 6
        assert notifier.events[0].attempt["competitor_number"] == 7
        assert notifier.events[0].attempt["section_name"] == "Section 1"

    def test_blocked_names_missing_sections(self, db, event, notifier):
        rider = add_competitor(db, 7, "Seven", event["advanced"])
        scoring.submit_attempt(db, rider.id, event["s1"], Outcome.penalty(1), notifier=notifier)

        with pytest.raises(Blocked) as exc:
            scoring.submit_attempt(db, rider.id, event["s1"], Outcome.penalty(1), notifier=notifier)
        assert exc.value.current_lap == 1
        assert exc.value.blocking_sections == ["Section 2", "Section 3"]
        assert count_attempts(db) == 1
        assert notifier.kinds == ["created"]

    def test_course_complete(self, db, event, notifier):
        rider = add_competitor(db, 7, "Seven", event["advanced"])
        for _ in range(2):
            for section in ("s1", "s2", "s3"):
                scoring.submit_attempt(db, rider.id, event[section], Outcome.penalty(0), notifier=notifier)

        with pytest.raises(CourseComplete) as exc:
            scoring.submit_attempt(db, rider.id, event["s2"], Outcome.penalty(0), notifier=notifier)
        assert exc.value.max_laps == 2

    def test_shared_sections_with_different_laps(self, db, event, notifier):
        """Advanced (2 laps) and Clubman (3 laps) share every section: 2 laps cap."""
        rider = add_competitor(db, 9, "Both", event["advanced"], event["clubman"])
        for _ in range(2):
            for section in ("s1", "s2", "s3"):
                scoring.submit_attempt(db, rider.id, event[section], Outcome.penalty(1), notifier=notifier)

        result = scoring.evaluate_attempt(db, rider.id, event["s1"])
        assert not result.allowed
        assert result.max_laps == 2
        with pytest.raises(CourseComplete):
            scoring.submit_attempt(db, rider.id, event["s1"], Outcome.penalty(1), notifier=notifier)

    def test_shared_section_waits_for_the_other_class(self, db, notifier):
        shared = catalog.create_section(db, "Shared")
        a2 = catalog.create_section(db, "A2")
        b2 = catalog.create_section(db, "B2")
        class_a = catalog.create_class(db, "a", "A", 3, [shared.id, a2.id])
        class_b = catalog.create_class(db, "b", "B", 3, [shared.id, b2.id])
        rider = add_competitor(db, 5, "Both", class_a.id, class_b.id)

        for section in (shared, b2, b2):
            scoring.submit_attempt(db, rider.id, section.id, Outcome.penalty(0), notifier=notifier)

        with pytest.raises(Blocked) as exc:
            scoring.submit_attempt(db, rider.id, shared.id, Outcome.penalty(0), notifier=notifier)
        assert exc.value.current_lap == 1
        assert exc.value.blocking_sections == ["A2"]
        assert str(exc.value) == "Must complete Lap 1 first. Missing: A2"

        first_a2 = scoring.submit_attempt(db, rider.id, a2.id, Outcome.penalty(1), notifier=notifier)
        assert first_a2.lap == 1

    def test_section_outside_classes_is_unconstrained(self, db, event, notifier):
        rider = add_competitor(db, 3, "Kid", event["kids"])
        first = scoring.submit_attempt(db, rider.id, event["s1"], Outcome.penalty(0), notifier=notifier)
        second = scoring.submit_attempt(db, rider.id, event["s1"], Outcome.penalty(0), notifier=notifier)
        assert (first.lap, second.lap) == (1, 2)

    def test_unknown_ids(self, db, event):
        rider = add_competitor(db, 1, "Rider", event["advanced"])
        with pytest.raises(CompetitorNotFound):
            scoring.evaluate_attempt(db, 999, event["s1"])
        with pytest.raises(SectionNotFound):
            scoring.evaluate_attempt(db, rider.id, 999)

    def test_concurrent_judges_do_not_duplicate(self, db, event, notifier):
        rider = add_competitor(db, 7, "Seven", event["advanced"])
        rider_id, section_id = rider.id, event["s1"]
        outcomes = []
        start = threading.Barrier(6)

        def judge():
            session = SessionLocal()
            try:
                start.wait()
                scoring.submit_attempt(session, rider_id, section_id, Outcome.penalty(1), notifier=notifier)
                outcomes.append("ok")
            except (Blocked, DuplicateAttempt) as e:
                outcomes.append(type(e).__name__)
            finally:
                session.close()

        threads = [threading.Thread(target=judge) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert len(outcomes) == 6
        assert count_attempts(db) == 1


class TestCorrections:

    def test_correct_keeps_lap_and_stamps_updated(self, db, event, notifier):
        rider = add_competitor(db, 7, "Seven", event["advanced"])
        a = scoring.submit_attempt(db, rider.id, event["s1"], Outcome.penalty(3), notifier=notifier)
        created = a.created_at

        fixed = scoring.correct_attempt(db, a.id, Outcome.dnf(), notifier=notifier)
        assert fixed.lap == 1
        assert fixed.is_dnf and fixed.points is None
        assert fixed.updated_at is not None
        assert fixed.created_at == created
        assert notifier.kinds == ["created", "corrected"]

    def test_correction_bypasses_gate(self, db, event, notifier):
        rider = add_competitor(db, 7, "Seven", event["advanced"])
        ids = []
        for _ in range(2):
            for section in ("s1", "s2", "s3"):
                ids.append(scoring.submit_attempt(
                    db, rider.id, event[section], Outcome.penalty(0), notifier=notifier
                ).id)
        # course is complete, a correction still goes through
        fixed = scoring.correct_attempt(db, ids[0], Outcome.penalty(5), notifier=notifier)
        assert fixed.points == 5

    def test_idempotent_correction(self, db, event, notifier):
        a_rider = add_competitor(db, 1, "A", event["kids"])
        b_rider = add_competitor(db, 2, "B", event["kids"])
        first = None
        for rider, points in ((a_rider, 1), (b_rider, 2)):
            for _ in range(2):
                for section in ("k1", "k2"):
                    attempt = scoring.submit_attempt(
                        db, rider.id, event[section], Outcome.penalty(points), notifier=notifier
                    )
                    first = first or attempt

        def summary():
            board = scoring.get_standings(db, class_id=event["kids"])[0]
            return [(e.number, e.rank, e.total, e.sections_done) for e in board.entries]

        before = summary()
        scoring.correct_attempt(db, first.id, Outcome.penalty(1), notifier=notifier)
        assert summary() == before

    def test_correct_unknown(self, db, event, notifier):
        with pytest.raises(AttemptNotFound):
            scoring.correct_attempt(db, 12345, Outcome.penalty(0), notifier=notifier)
        assert notifier.events == []


class TestRemoval:

    def test_remove_single(self, db, event, notifier):
        rider = add_competitor(db, 7, "Seven", event["advanced"])
        a = scoring.submit_attempt(db, rider.id, event["s1"], Outcome.penalty(0), notifier=notifier)
        scoring.remove_attempt(db, a.id, notifier=notifier)
        assert count_attempts(db) == 0
        assert notifier.kinds == ["created", "removed"]
        assert notifier.events[-1].attempt["id"] == a.id

        # lap 1 is free again
        again = scoring.submit_attempt(db, rider.id, event["s1"], Outcome.penalty(1), notifier=notifier)
        assert again.lap == 1

    def test_reset_all(self, db, event, notifier):
        rider = add_competitor(db, 7, "Seven", event["advanced"])
        for section in ("s1", "s2"):
            scoring.submit_attempt(db, rider.id, event[section], Outcome.penalty(0), notifier=notifier)
        assert scoring.reset_all_attempts(db, notifier=notifier) == 2
        assert count_attempts(db) == 0
        assert notifier.kinds[-1] == "reset"


class TestStandingsFromDatabase:

    def test_worked_example(self, db, notifier):
        s1 = catalog.create_section(db, "S1")
        s2 = catalog.create_section(db, "S2")
        advanced = catalog.create_class(db, "advanced", "Advanced", 2, [s1.id, s2.id])
        rider = add_competitor(db, 7, "Seven", advanced.id)

        scoring.submit_attempt(db, rider.id, s1.id, Outcome.penalty(1), notifier=notifier)
        scoring.submit_attempt(db, rider.id, s2.id, Outcome.penalty(0), notifier=notifier)

        result = scoring.evaluate_attempt(db, rider.id, s1.id)
        assert result.current_lap == 1 and result.allowed and result.next_lap == 2

        scoring.submit_attempt(db, rider.id, s1.id, Outcome.penalty(3), notifier=notifier)

        assert scoring.evaluate_attempt(db, rider.id, s2.id).allowed
        with pytest.raises(CourseComplete):
            scoring.submit_attempt(db, rider.id, s1.id, Outcome.penalty(0), notifier=notifier)

        board = scoring.get_standings(db)[0]
        entry = board.entries[0]
        assert (entry.completed, entry.sections_done, entry.total) == (False, 3, 4)

    def test_dnf_penalty_applied_consistently(self, db, event, notifier):
        rider = add_competitor(db, 1, "A", event["kids"])
        scoring.submit_attempt(db, rider.id, event["k1"], Outcome.dnf(), notifier=notifier)

        plain = scoring.get_standings(db, class_id=event["kids"], dnf_penalty=0)[0]
        heavy = scoring.get_standings(db, class_id=event["kids"], dnf_penalty=20)[0]
        assert plain.entries[0].total == 0
        assert heavy.entries[0].total == 20
        assert plain.entries[0].dnf_count == heavy.entries[0].dnf_count == 1
