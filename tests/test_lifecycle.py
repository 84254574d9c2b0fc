"""Booking lifecycle: status graph, permissions and optimistic versions."""

from datetime import date, datetime

import pytest
from sqlalchemy.orm.exc import StaleDataError

from engine import lifecycle
from engine.errors import (
    ConcurrentModification,
    Forbidden,
    InvalidTransition,
    NotFound,
    ServiceNotActive,
    SlotInPast,
    SlotNotOffered,
    StoreUnavailable,
    ValidationError,
)
from engine.store import DayLocks, unit_of_work
from models import db
from models.audit_log import AuditLog
from models.booking import Booking


def at(hour, minute=0, day=19):
    return datetime(2026, 10, day, hour, minute)


@pytest.fixture
def book(users, services):
    def _book(who="customer", service="cut", when=None, **kwargs):
        return lifecycle.create_booking(users[who], services[service], when or at(9), **kwargs)
    return _book


class TestCreate:
    def test_new_booking_is_pending_and_ranked(self, book):
        b = book(notes="  skin fade please  ")

        assert b.status == "pending"
        assert b.version == 1
        assert b.notes == "skin fade please"
        assert (b.queue_number, b.estimated_wait_minutes) == (1, 0)

    def test_audit_row_in_same_commit(self, book, users):
        b = book()

        row = AuditLog.query.filter_by(action="BOOKING_CREATE").one()
        assert row.entity_id == str(b.id)
        assert row.user_id == users["customer"]

    def test_slot_already_started(self, book):
        with pytest.raises(SlotInPast):
            book(when=at(8, 0))

    def test_slot_off_the_grid(self, book):
        with pytest.raises(SlotNotOffered):
            book(when=at(9, 15))

    def test_shop_closed_on_sunday(self, book):
        with pytest.raises(SlotNotOffered):
            book(when=at(10, day=25))

    def test_inactive_service(self, book):
        with pytest.raises(ServiceNotActive):
            book(service="retired")

    def test_unknown_service(self, users):
        with pytest.raises(NotFound):
            lifecycle.create_booking(users["customer"], 9999, at(9))

    def test_assigned_barber_must_be_a_barber(self, book, users):
        with pytest.raises(ValidationError):
            book(barber_id=users["other"])

    def test_notes_length_is_bounded(self, book):
        with pytest.raises(ValidationError):
            book(notes="x" * (lifecycle.MAX_NOTES_LENGTH + 1))


class TestTransitionTable:
    def test_terminal_statuses_have_no_exits(self):
        assert lifecycle.allowed_transitions("completed") == frozenset()
        assert lifecycle.allowed_transitions("cancelled") == frozenset()

    def test_every_active_status_can_be_cancelled_or_completed(self):
        for status in ("pending", "confirmed", "in_progress"):
            assert {"cancelled", "completed"} <= lifecycle.allowed_transitions(status)

    def test_rejection_lists_the_allowed_targets(self):
        with pytest.raises(InvalidTransition) as exc:
            lifecycle.check_transition("in_progress", "confirmed")
        assert exc.value.details["allowed"] == ["cancelled", "completed"]
        assert exc.value.status_code == 409


class TestStatusGraph:
    def test_full_path_to_completed(self, book, users):
        b = book()
        for status in ("confirmed", "in_progress", "completed"):
            b = lifecycle.transition_booking(b.id, status, users["admin"])
            assert b.status == status

        assert b.completed_at is not None
        assert b.queue_number is None
        assert b.estimated_wait_minutes is None

    def test_pending_may_skip_straight_to_completed(self, book, users):
        b = book()
        assert lifecycle.transition_booking(b.id, "completed", users["admin"]).status == "completed"

    @pytest.mark.parametrize("terminal", ["completed", "cancelled"])
    def test_terminal_accepts_nothing(self, book, users, terminal):
        b = book()
        lifecycle.transition_booking(b.id, terminal, users["admin"])

        for target in ("pending", "confirmed", "in_progress", "completed", "cancelled"):
            with pytest.raises(InvalidTransition):
                lifecycle.transition_booking(b.id, target, users["admin"])

    def test_no_way_back_to_pending(self, book, users):
        b = book()
        lifecycle.transition_booking(b.id, "confirmed", users["admin"])

        with pytest.raises(InvalidTransition) as exc:
            lifecycle.transition_booking(b.id, "pending", users["admin"])
        assert exc.value.details["current_status"] == "confirmed"

    def test_unknown_status(self, book, users):
        b = book()
        with pytest.raises(ValidationError):
            lifecycle.transition_booking(b.id, "no_show", users["admin"])

    def test_missing_booking(self, users):
        with pytest.raises(NotFound):
            lifecycle.transition_booking(424242, "cancelled", users["admin"])


class TestPermissions:
    def test_customer_cancels_own_pending(self, book, users):
        b = book()
        b = lifecycle.transition_booking(b.id, "cancelled", users["customer"])

        assert b.status == "cancelled"
        assert b.cancelled_by == users["customer"]
        assert b.queue_number is None

    def test_customer_cannot_touch_someone_elses(self, book, users):
        b = book()
        with pytest.raises(Forbidden):
            lifecycle.transition_booking(b.id, "cancelled", users["other"])
        assert db.session.get(Booking, b.id).status == "pending"

    def test_customer_cannot_confirm(self, book, users):
        b = book()
        with pytest.raises(Forbidden):
            lifecycle.transition_booking(b.id, "confirmed", users["customer"])

    def test_permission_is_checked_before_the_graph(self, book, users):
        b = book()
        lifecycle.transition_booking(b.id, "completed", users["admin"])

        with pytest.raises(Forbidden):
            lifecycle.transition_booking(b.id, "cancelled", users["customer"])

    def test_barber_works_assigned_bookings_only(self, book, users):
        mine = book(barber_id=users["barber"])
        unassigned = book(who="other", when=at(9, 30))

        assert lifecycle.transition_booking(mine.id, "in_progress", users["barber"]).status == "in_progress"
        with pytest.raises(Forbidden):
            lifecycle.transition_booking(unassigned.id, "confirmed", users["barber"])

    def test_unknown_actor(self, book):
        b = book()
        with pytest.raises(Forbidden):
            lifecycle.transition_booking(b.id, "cancelled", 9999)


class TestVersions:
    def test_each_write_bumps_version(self, book, users):
        b = book()
        b = lifecycle.transition_booking(b.id, "confirmed", users["admin"], expected_version=1)
        assert b.version == 2

    def test_stale_expected_version_is_rejected(self, book, users):
        b = book()
        lifecycle.transition_booking(b.id, "confirmed", users["admin"])

        with pytest.raises(ConcurrentModification) as exc:
            lifecycle.transition_booking(b.id, "cancelled", users["admin"], expected_version=1)
        assert exc.value.retryable
        assert db.session.get(Booking, b.id).status == "confirmed"

    def test_reranking_does_not_bump_other_versions(self, book, users):
        first = book(when=at(10))
        book(who="other", when=at(9))

        assert db.session.get(Booking, first.id).queue_number == 2
        assert db.session.get(Booking, first.id).version == 1

    def test_lost_update_maps_to_concurrent_modification(self, app):
        with pytest.raises(ConcurrentModification):
            with unit_of_work():
                raise StaleDataError("UPDATE statement on table 'bookings' expected to update 1 row(s); 0 were matched.")

    def test_booking_moved_before_its_day_was_locked(self, book, users, monkeypatch):
        b = book()
        monkeypatch.setattr(lifecycle, "booking_day", lambda booking_id: date(2026, 10, 20))

        with pytest.raises(ConcurrentModification):
            lifecycle.transition_booking(b.id, "confirmed", users["admin"])
        assert db.session.get(Booking, b.id).status == "pending"

    def test_reranking_needs_the_day_held(self, app):
        with pytest.raises(RuntimeError):
            with unit_of_work([date(2026, 10, 19)]) as uow:
                uow.touch(date(2026, 10, 20))


class TestDayLocks:
    def test_same_day_times_out(self):
        locks = DayLocks()
        day = date(2026, 10, 19)
        with locks.hold([day], timeout=1):
            with pytest.raises(StoreUnavailable):
                with locks.hold([day], timeout=0.01):
                    pass

    def test_different_days_do_not_contend(self):
        locks = DayLocks()
        with locks.hold([date(2026, 10, 19)], timeout=1):
            with locks.hold([date(2026, 10, 20)], timeout=0.01):
                pass


class TestReschedule:
    def test_customer_moves_own_pending(self, book, users):
        b = book()
        b = lifecycle.reschedule_booking(b.id, at(11), users["customer"], new_notes="running late")

        assert b.scheduled_time == at(11)
        assert b.notes == "running late"
        assert b.version == 2

    def test_customer_cannot_move_confirmed(self, book, users):
        b = book()
        lifecycle.transition_booking(b.id, "confirmed", users["admin"])

        with pytest.raises(Forbidden):
            lifecycle.reschedule_booking(b.id, at(11), users["customer"])

    def test_barber_cannot_reschedule(self, book, users):
        b = book(barber_id=users["barber"])
        with pytest.raises(Forbidden):
            lifecycle.reschedule_booking(b.id, at(11), users["barber"])

    def test_admin_moves_confirmed_but_not_terminal(self, book, users):
        b = book()
        lifecycle.transition_booking(b.id, "confirmed", users["admin"])
        assert lifecycle.reschedule_booking(b.id, at(13), users["admin"]).scheduled_time == at(13)

        lifecycle.transition_booking(b.id, "completed", users["admin"])
        with pytest.raises(InvalidTransition):
            lifecycle.reschedule_booking(b.id, at(14), users["admin"])

    def test_cannot_move_into_the_past(self, book, users):
        b = book()
        with pytest.raises(SlotInPast):
            lifecycle.reschedule_booking(b.id, at(7, 30), users["customer"])
        assert db.session.get(Booking, b.id).scheduled_time == at(9)

    def test_notes_only_keeps_time(self, book, users):
        b = book()
        b = lifecycle.reschedule_booking(b.id, None, users["customer"], new_notes="beard too")

        assert b.scheduled_time == at(9)
        assert b.notes == "beard too"
        assert b.queue_number == 1


class TestReassign:
    def test_admin_assigns_barber_without_reranking(self, book, users):
        b = book()
        b = lifecycle.reassign_booking(b.id, users["admin"], barber_id=users["barber"])

        assert b.barber_id == users["barber"]
        assert b.queue_number == 1
        assert lifecycle.transition_booking(b.id, "in_progress", users["barber"]).status == "in_progress"

    def test_unassign_barber(self, book, users):
        b = book(barber_id=users["barber"])
        assert lifecycle.reassign_booking(b.id, users["admin"], barber_id=None).barber_id is None

    def test_service_change_updates_waits(self, book, users, services):
        first = book()
        second = book(who="other", when=at(9, 30))
        assert second.estimated_wait_minutes == 30

        lifecycle.reassign_booking(first.id, users["admin"], service_id=services["combo"])

        assert db.session.get(Booking, second.id).estimated_wait_minutes == 45

    def test_customer_reassign_is_forbidden(self, book, users):
        b = book()
        with pytest.raises(Forbidden):
            lifecycle.reassign_booking(b.id, users["customer"], customer_id=users["other"])

    def test_nothing_to_change(self, book, users):
        b = book()
        with pytest.raises(ValidationError):
            lifecycle.reassign_booking(b.id, users["admin"], customer_id=users["customer"])
