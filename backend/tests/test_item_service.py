"""
Item Store tests: creation, edits, the status transition primitive and the
version-counter compare-and-swap.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from tracker.errors import DuplicateSerialNumberError, InvalidStateError, NotFoundError, ValidationError
from tracker.services import item_service


class TestCreateAndEdit:

    def test_new_item_is_available(self, db_session, admin):
        item = item_service.create_item("Ladder", "LAD-1", changed_by=admin.id)
        db_session.commit()

        assert item.status == "available"
        assert item.last_used_by is None
        assert item.changed_by == admin.id
        assert item.version_id == 1

    def test_duplicate_serial_rejected(self, db_session, item):
        with pytest.raises(DuplicateSerialNumberError):
            item_service.create_item("Another drill", "SN-0001")

    def test_update_fields_reports_changes(self, db_session, item, admin):
        updated, changes = item_service.update_item_fields(
            item.id, {"material": "Hammer drill", "description": "18V, two batteries"},
            changed_by=admin.id,
        )
        db_session.commit()

        assert updated.material == "Hammer drill"
        assert changes == ["Material: Cordless drill -> Hammer drill"]

    def test_update_without_changes_is_noop(self, db_session, item, admin):
        _, changes = item_service.update_item_fields(item.id, {"material": "Cordless drill"}, changed_by=admin.id)
        assert changes == []

    def test_update_serial_to_existing_rejected(self, db_session, item, admin):
        other = item_service.create_item("Saw", "SAW-1", changed_by=admin.id)
        db_session.commit()

        with pytest.raises(DuplicateSerialNumberError):
            item_service.update_item_fields(other.id, {"serial_number": "SN-0001"}, changed_by=admin.id)

    def test_status_is_not_an_editable_field(self, db_session, item, admin):
        with pytest.raises(ValidationError):
            item_service.update_item_fields(item.id, {"status": "used"}, changed_by=admin.id)

    def test_unknown_item(self, db_session):
        with pytest.raises(NotFoundError):
            item_service.get_item(9999)


class TestTransitionStatus:

    def test_archive_stamps_archived_at(self, db_session, item, admin):
        archived = item_service.transition_status(
            item.id, "archived", changed_by=admin.id, archived_reason="Broken"
        )
        db_session.commit()

        assert archived.status == "archived"
        assert archived.archived_reason == "Broken"
        assert archived.archived_at is not None

    def test_restore_clears_archive_metadata(self, db_session, item, admin):
        item_service.transition_status(item.id, "archived", changed_by=admin.id, archived_reason="Broken")
        db_session.commit()

        restored = item_service.transition_status(
            item.id, "available", changed_by=admin.id, last_used_by=None, archived_reason=None
        )
        db_session.commit()

        assert restored.archived_at is None
        assert restored.archived_reason is None

    def test_unset_keeps_borrower(self, db_session, item, admin, alice):
        item_service.transition_status(item.id, "used", changed_by=admin.id, last_used_by=alice.id)
        db_session.commit()

        touched = item_service.transition_status(item.id, "used", changed_by=admin.id)
        assert touched.last_used_by == alice.id

    def test_expected_status_guard(self, db_session, item, admin):
        with pytest.raises(InvalidStateError):
            item_service.transition_status(item.id, "available", changed_by=admin.id, expected_status="used")

    def test_invalid_status(self, db_session, item, admin):
        with pytest.raises(ValidationError):
            item_service.transition_status(item.id, "lost", changed_by=admin.id)

    def test_version_increments(self, db_session, item, admin, alice):
        item_service.transition_status(item.id, "used", changed_by=admin.id, last_used_by=alice.id)
        db_session.commit()

        assert item_service.get_item(item.id).version_id == 2

    def test_stale_write_is_rejected(self, db_session, item, alice):
        """A writer holding an old version cannot overwrite a newer row."""
        item_id, alice_id = item.id, alice.id
        loaded = item_service.get_item(item_id)
        assert loaded.version_id == 1

        # Another transaction bumps the row behind our back
        db_session.execute(text("UPDATE items SET version_id = version_id + 1 WHERE id = :id"), {"id": item_id})

        with db_session.no_autoflush:
            loaded.status = "used"
            loaded.last_used_by = alice_id
        with pytest.raises(StaleDataError):
            db_session.flush()
        db_session.rollback()


class TestListing:

    def test_archived_hidden_by_default(self, db_session, item, admin):
        saw = item_service.create_item("Saw", "SAW-1", changed_by=admin.id)
        item_service.transition_status(saw.id, "archived", changed_by=admin.id, archived_reason="Old")
        db_session.commit()

        assert [i.id for i in item_service.list_items()] == [item.id]
        assert {i.id for i in item_service.list_items(include_archived=True)} == {item.id, saw.id}
        assert [i.id for i in item_service.list_items(status="archived")] == [saw.id]

    def test_list_search_matches_description(self, db_session, item):
        assert [i.id for i in item_service.list_items(search="batteries")] == [item.id]
        assert item_service.list_items(search="welder") == []

    def test_search_is_case_insensitive_and_skips_archived(self, db_session, item, admin):
        old = item_service.create_item("Drill press", "DP-1", changed_by=admin.id)
        item_service.transition_status(old.id, "archived", changed_by=admin.id, archived_reason="Sold")
        db_session.commit()

        assert [i.id for i in item_service.search_items("DRILL")] == [item.id]
        assert [i.id for i in item_service.search_items("sn-00")] == [item.id]

    def test_search_limit(self, db_session, admin):
        for n in range(5):
            item_service.create_item(f"Clamp {n}", f"CL-{n}", changed_by=admin.id)
        db_session.commit()

        assert len(item_service.search_items("clamp", limit=3)) == 3
