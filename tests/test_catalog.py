"""Tests for section and class administration."""

import pytest

from backend.trials.core.errors import ClassNotFound, InvalidConfiguration, SectionNotFound
from backend.trials.services import catalog, scoring
from backend.trials.services.ledger import Outcome

from conftest import add_competitor


def version(db):
    return catalog.load_catalog(db).version


class TestSections:

    def test_positions_follow_creation_order(self, db):
        a = catalog.create_section(db, "Rock Step")
        b = catalog.create_section(db, "Creek")
        assert (a.position, b.position) == (1, 2)
        assert [s.name for s in catalog.load_catalog(db).list_sections()] == ["Rock Step", "Creek"]

    def test_blank_name_rejected(self, db):
        with pytest.raises(InvalidConfiguration):
            catalog.create_section(db, "   ")

    def test_rename_allowed_with_scores(self, db, event, notifier):
        rider = add_competitor(db, 1, "A", event["advanced"])
        scoring.submit_attempt(db, rider.id, event["s1"], Outcome.penalty(1), notifier=notifier)

        catalog.rename_section(db, event["s1"], "Big Log")
        assert catalog.load_catalog(db).section_name(event["s1"]) == "Big Log"

    def test_delete_refused_when_scored(self, db, event, notifier):
        rider = add_competitor(db, 1, "A", event["advanced"])
        scoring.submit_attempt(db, rider.id, event["s1"], Outcome.penalty(1), notifier=notifier)
        with pytest.raises(InvalidConfiguration, match="already has scores"):
            catalog.delete_section(db, event["s1"])

    def test_delete_refused_when_used_by_class(self, db, event):
        with pytest.raises(InvalidConfiguration, match="Kids"):
            catalog.delete_section(db, event["k1"])

    def test_delete_free_section(self, db, event):
        spare = catalog.create_section(db, "Spare")
        catalog.delete_section(db, spare.id)
        assert spare.id not in catalog.load_catalog(db).sections
        with pytest.raises(SectionNotFound):
            catalog.delete_section(db, spare.id)


class TestClasses:

    @pytest.mark.parametrize(
        "laps, section_keys, message",
        [
            (0, ["s1"], "at least one lap"),
            (2, [], "at least one section"),
            (2, ["s1", "s1"], "same section twice"),
        ],
    )
    def test_invalid_definitions(self, db, event, laps, section_keys, message):
        ids = [event[k] for k in section_keys]
        with pytest.raises(InvalidConfiguration, match=message):
            catalog.create_class(db, "pro", "Pro", laps, ids)

    def test_unknown_section(self, db, event):
        with pytest.raises(InvalidConfiguration, match="Unknown section ids: 999"):
            catalog.create_class(db, "pro", "Pro", 2, [event["s1"], 999])

    def test_duplicate_code(self, db, event):
        with pytest.raises(InvalidConfiguration, match="already exists"):
            catalog.create_class(db, "kids", "Kids again", 1, [event["k1"]])

    def test_section_order_is_kept(self, db, event):
        pro = catalog.create_class(db, "pro", "Pro", 1, [event["s3"], event["s1"]])
        assert catalog.load_catalog(db).get_class(pro.id).section_ids == (event["s3"], event["s1"])

    def test_update_replaces_sections(self, db, event):
        catalog.update_class(db, event["kids"], "kids", "Kids", 3, [event["k2"], event["k1"]], color="yellow")
        info = catalog.load_catalog(db).get_class(event["kids"])
        assert info.laps == 3
        assert info.section_ids == (event["k2"], event["k1"])
        assert info.course_size == 6

    def test_update_may_keep_own_code(self, db, event):
        catalog.update_class(db, event["kids"], "kids", "Kids Cup", 2, [event["k1"], event["k2"]])
        assert catalog.load_catalog(db).get_class(event["kids"]).name == "Kids Cup"

    def test_delete_class(self, db, event):
        rider = add_competitor(db, 1, "A", event["kids"], event["advanced"])
        catalog.delete_class(db, event["kids"])
        db.refresh(rider)
        assert rider.class_ids == frozenset({event["advanced"]})
        with pytest.raises(ClassNotFound):
            catalog.load_catalog(db).get_class(event["kids"])


class TestVersion:

    def test_every_edit_bumps_version(self, db, event):
        start = version(db)
        catalog.rename_section(db, event["s2"], "Section Two")
        assert version(db) == start + 1
        catalog.update_class(db, event["kids"], "kids", "Kids", 1, [event["k1"]])
        assert version(db) == start + 2

    def test_snapshot_is_detached_from_later_edits(self, db, event):
        before = catalog.load_catalog(db)
        catalog.rename_section(db, event["s1"], "Renamed")
        assert before.section_name(event["s1"]) == "Section 1"


class TestSeed:

    def test_seeds_empty_database_once(self, db):
        assert catalog.seed_default_catalog(db) is True
        snap = catalog.load_catalog(db)
        assert len(snap.sections) == 11
        assert [c.code for c in snap.list_classes()] == ["kids", "clubman", "advanced", "enduro-trial"]
        assert all(c.laps == catalog.DEFAULT_LAPS for c in snap.list_classes())
        assert catalog.seed_default_catalog(db) is False

    def test_clubman_and_advanced_share_sections(self, db):
        catalog.seed_default_catalog(db)
        classes = {c.code: c for c in catalog.load_catalog(db).list_classes()}
        assert classes["clubman"].section_ids == classes["advanced"].section_ids
        assert len(classes["clubman"].section_ids) == 6
