from datetime import timedelta

import pytest

from core.errors import ConflictError, PermissionDeniedError, StateError, ValidationError
from models.base import utcnow
from services.notification_service import CLAIM_SHIPPED


def claim_details(name="Asha Rao", email="asha@example.com"):
    return {
        "full_name": name,
        "email": email,
        "phone": "+911234567890",
        "organization": "Green School",
        "shipping_address": {"address": "1 Main St", "city": "Pune", "state": "MH", "zip_code": "411001"},
    }


@pytest.fixture
def claimer(make_user):
    return make_user(role="claimer")


@pytest.fixture
def claim(claim_service, make_cause, claimer):
    cause = make_cause(status="sponsored")
    return claim_service.create_claim(cause.cause_id, claimer, claim_details())


class TestCreateClaim:

    def test_claim_marks_cause(self, claim_service, causes, claims, make_cause, claimer):
        cause = make_cause(status="sponsored")
        claim = claim_service.create_claim(cause.cause_id, claimer, claim_details())

        assert claim.status == "pending"
        assert claim.cause_title == "Clean Water"
        assert causes.require(cause.cause_id).claimed_by == claimer.user_id
        assert claims.require(claim.claim_id).user_id == claimer.user_id

    def test_cause_must_be_sponsored(self, claim_service, make_cause, claimer):
        cause = make_cause(status="open")
        with pytest.raises(StateError):
            claim_service.create_claim(cause.cause_id, claimer, claim_details())

    def test_one_claimant_per_cause(self, claim_service, claims, claim, make_user):
        with pytest.raises(StateError):
            claim_service.create_claim(claim.cause_id, make_user(role="claimer"), claim_details("Ravi", "ravi@example.com"))
        assert len(claims.list_all()) == 1

    def test_duplicate_claim(self, claim_service, claim, claimer):
        with pytest.raises(ConflictError):
            claim_service.create_claim(claim.cause_id, claimer, claim_details())

    def test_cause_changed_under_us(self, claim_service, causes, claims, make_cause, claimer, make_user):
        """The cause is claimed by someone else between our check and our write."""
        cause = make_cause(status="sponsored")
        rival = make_user(role="claimer")
        original_require = causes.require
        calls = []

        def require_then_lose_race(cause_id):
            doc = original_require(cause_id)
            if not calls:
                calls.append(cause_id)
                causes.mutate(cause_id, lambda c: setattr(c, "claimed_by", rival.user_id))
            return doc

        causes.require = require_then_lose_race
        try:
            with pytest.raises(StateError):
                claim_service.create_claim(cause.cause_id, claimer, claim_details())
        finally:
            del causes.require
        assert claims.list_all() == []


class TestStatusUpdates:

    def test_shipping_enqueues_email(self, claim_service, queue, claim):
        claim_service.update_status(claim.claim_id, "processing")
        update = claim_service.update_status(claim.claim_id, "shipped", tracking_number="TRK123",
                                             tracking_url="https://track.example.com/TRK123")

        assert update.claim.status == "shipped"
        assert update.email_queued is True
        job = queue.enqueue.call_args[0][0]
        assert job["type"] == CLAIM_SHIPPED
        assert job["email_to"] == "asha@example.com"
        assert job["tracking_number"] == "TRK123"

    def test_failed_enqueue_keeps_transition(self, claim_service, claims, queue, claim):
        queue.enqueue.return_value = False
        claim_service.update_status(claim.claim_id, "processing")
        update = claim_service.update_status(claim.claim_id, "shipped", tracking_number="TRK123")

        assert update.email_queued is False
        assert claims.require(claim.claim_id).status == "shipped"

    def test_shipping_without_tracking(self, claim_service, claims, claim):
        claim_service.update_status(claim.claim_id, "processing")
        with pytest.raises(ValidationError):
            claim_service.update_status(claim.claim_id, "shipped")
        assert claims.require(claim.claim_id).status == "processing"

    def test_other_transitions_send_nothing(self, claim_service, queue, claim):
        update = claim_service.verify(claim.claim_id)
        assert update.claim.status == "verified"
        assert update.claim.verified_at is not None
        assert update.email_queued is None
        queue.enqueue.assert_not_called()

    def test_history_grows_by_one_per_transition(self, claim_service, claim):
        claim_service.update_status(claim.claim_id, "processing")
        updated = claim_service.update_status(claim.claim_id, "rejected", note="Address unreachable").claim
        assert [h.status for h in updated.status_history] == ["pending", "processing", "rejected"]
        assert updated.status_history[-1].note == "Address unreachable"

    def test_illegal_transition(self, claim_service, claim):
        with pytest.raises(StateError):
            claim_service.update_status(claim.claim_id, "delivered")

    def test_legacy_status_name(self, claim_service, claim):
        assert claim_service.update_status(claim.claim_id, "APPROVED").claim.status == "verified"


class TestNotesAndProof:

    def test_admin_note(self, claim_service, claim, make_user):
        admin = make_user(role="admin", name="Admin")
        updated = claim_service.add_note(claim.claim_id, "Called the school", admin)
        assert updated.notes[-1].text == "Called the school"
        assert updated.notes[-1].by == "Admin"

        with pytest.raises(ValidationError):
            claim_service.add_note(claim.claim_id, " ", admin)

    def test_proof_only_from_claimant(self, claim_service, claim, claimer, make_user):
        with pytest.raises(PermissionDeniedError):
            claim_service.add_proof_of_impact(claim.claim_id, make_user(role="admin"), [], "Photos")

        updated = claim_service.add_proof_of_impact(
            claim.claim_id, claimer, ["https://img.example.com/kids.jpg"], "Totes handed out"
        )
        assert updated.proof_of_impact.description == "Totes handed out"


class TestQueries:

    def test_access_control(self, claim_service, claim, claimer, make_user):
        assert claim_service.get(claim.claim_id, claimer).claim_id == claim.claim_id
        with pytest.raises(PermissionDeniedError):
            claim_service.get(claim.claim_id, make_user(role="claimer"))
        with pytest.raises(PermissionDeniedError):
            claim_service.list_for_user(claimer.user_id, make_user(role="sponsor"))
        assert [c.claim_id for c in claim_service.list_for_user(claimer.user_id, claimer)] == [claim.claim_id]

    def test_admin_filters(self, claim_service, make_cause, make_user):
        for n in range(3):
            cause = make_cause(status="sponsored", title=f"Cause {n}")
            claim_service.create_claim(cause.cause_id, make_user(role="claimer"),
                                       claim_details(f"Claimer {n}", f"claimer{n}@example.com"))

        assert claim_service.list_all().total == 3
        assert claim_service.list_all(status="pending").total == 3
        assert claim_service.list_all(status="shipped").total == 0
        assert claim_service.list_all(search="claimer1@").total == 1
        assert claim_service.list_all(search="cause 2").total == 1
        assert claim_service.list_all(start_date=utcnow() + timedelta(days=1)).total == 0

        page = claim_service.list_all(page=1)
        assert page.pages == 1
        assert len(page.claims) == 3

        with pytest.raises(ValidationError):
            claim_service.list_all(status="lost")
