from datetime import timedelta

import pytest

from core.errors import NotFoundError, StateError, ValidationError
from models.base import utcnow
from models.cause import CAUSE_STATUS, Cause, Sponsor
from models.claim import Claim, ShippingAddress
from models.logo_review import LogoReview
from models.user import User
from models.waitlist import WaitlistEntry


def new_cause(**fields):
    defaults = dict(
        title="Clean Water",
        description="Wells",
        story="Story",
        image_url="https://img.example.com/a.png",
        category="environment",
        goal=5000,
        status="open",
    )
    return Cause(**{**defaults, **fields})


def new_claim(**fields):
    defaults = dict(
        cause_id="c1",
        user_id="u1",
        full_name="Asha Rao",
        email="asha@example.com",
        phone="+911234567890",
        organization="Green School",
        shipping_address=ShippingAddress(address="1 Main St", city="Pune", state="MH", zip_code="411001"),
    )
    return Claim.open(**{**defaults, **fields})


class TestStatusMachine:

    def test_allowed_and_blocked_transitions(self):
        assert CAUSE_STATUS.can("pending", "open")
        assert CAUSE_STATUS.can("waitlist", "sponsored")
        assert not CAUSE_STATUS.can("sponsored", "open")
        assert CAUSE_STATUS.is_terminal("completed")
        assert CAUSE_STATUS.is_terminal("rejected")

    def test_ensure_separates_unknown_status_from_illegal_move(self):
        with pytest.raises(ValidationError):
            CAUSE_STATUS.ensure("open", "archived")
        with pytest.raises(StateError):
            CAUSE_STATUS.ensure("completed", "open")


class TestCause:

    def test_raised_counts_only_approved_sponsors(self):
        cause = new_cause()
        sponsor = cause.add_sponsor(Sponsor(name="Acme", amount=3000))
        assert cause.raised == 0
        assert cause.pending_amount == 3000
        assert cause.model_dump()["pending_amount"] == 3000

        cause.approve_sponsor(sponsor.sponsor_id)
        assert cause.raised == 3000
        assert cause.status == "open"

    def test_reaching_goal_marks_sponsored_and_never_regresses(self):
        cause = new_cause(goal=100)
        first = cause.add_sponsor(Sponsor(name="A", amount=60))
        second = cause.add_sponsor(Sponsor(name="B", amount=40))
        cause.approve_sponsor(first.sponsor_id)
        cause.approve_sponsor(second.sponsor_id)
        assert cause.status == "sponsored"

        cause.reject_sponsor(first.sponsor_id, "Duplicate payment")
        assert cause.raised == 40
        assert cause.status == "sponsored"

    def test_sponsorship_requires_open_cause(self):
        cause = new_cause(status="pending")
        with pytest.raises(StateError):
            cause.add_sponsor(Sponsor(name="Acme", amount=10))

    def test_paid_sponsor_is_recorded_once(self):
        cause = new_cause(status="waitlist")
        sponsor = Sponsor(sponsor_id="s1", name="Acme", amount=50, status="approved")
        cause.add_paid_sponsor(sponsor)
        cause.add_paid_sponsor(Sponsor(sponsor_id="s1", name="Acme", amount=50, status="approved"))
        assert len(cause.sponsors) == 1
        assert cause.raised == 50

    def test_unknown_sponsor(self):
        with pytest.raises(NotFoundError):
            new_cause().approve_sponsor("missing")

    def test_logo_shown_only_after_approval(self):
        sponsor = Sponsor(name="Acme", amount=10, logo="https://img.example.com/logo.png")
        assert sponsor.display_logo is None
        sponsor.logo_status = "APPROVED"
        assert sponsor.display_logo == "https://img.example.com/logo.png"

    def test_waitlist_toggle(self):
        cause = new_cause()
        cause.set_waitlist(True)
        assert cause.status == "waitlist"
        cause.set_waitlist(False)
        assert cause.status == "open"

    def test_claimable_only_by_first_claimant(self):
        cause = new_cause(status="sponsored", claimed_by="u1")
        assert cause.is_claimable_by("u1")
        assert not cause.is_claimable_by("u2")


class TestClaim:

    def test_creation_records_history(self):
        claim = new_claim()
        assert claim.status == "pending"
        assert [h.status for h in claim.status_history] == ["pending"]

    def test_each_transition_appends_one_history_record(self):
        claim = new_claim()
        claim.transition("processing")
        claim.transition("shipped", tracking_number="TRK1")
        claim.transition("delivered")
        assert [h.status for h in claim.status_history] == ["pending", "processing", "shipped", "delivered"]

    def test_shipping_requires_tracking_number(self):
        claim = new_claim()
        claim.transition("processing")
        with pytest.raises(ValidationError):
            claim.transition("shipped")
        assert claim.status == "processing"

    def test_verify_sets_timestamp(self):
        claim = new_claim()
        now = utcnow()
        claim.transition("verified", now=now)
        assert claim.verified_at == now

    def test_delivered_is_terminal(self):
        claim = new_claim()
        claim.transition("processing")
        claim.transition("shipped", tracking_number="TRK1")
        claim.transition("delivered")
        with pytest.raises(StateError):
            claim.transition("rejected")

    def test_legacy_statuses_are_mapped(self):
        claim = new_claim(status="APPROVED")
        assert claim.status == "verified"


class TestWaitlistEntry:

    def make_entry(self):
        return WaitlistEntry(cause_id="c1", user_id="u1", full_name="Asha", email="asha@example.com",
                             phone="1", organization="School", position=1)

    def test_magic_link_lifecycle(self):
        entry = self.make_entry()
        now = utcnow()
        token = entry.issue_magic_link(timedelta(hours=48), now)
        assert entry.status == "notified"
        assert entry.magic_link_valid(token, now + timedelta(hours=47))
        assert not entry.magic_link_valid(token, now + timedelta(hours=49))
        assert not entry.magic_link_valid("other", now)

    def test_expiring_clears_link(self):
        entry = self.make_entry()
        entry.issue_magic_link(timedelta(hours=48))
        entry.set_status("expired")
        assert entry.magic_link_token is None
        assert entry.magic_link_expires is None

    def test_claimed_is_terminal(self):
        entry = self.make_entry()
        entry.issue_magic_link(timedelta(hours=48))
        entry.set_status("claimed")
        with pytest.raises(StateError):
            entry.issue_magic_link(timedelta(hours=48))


class TestLogoReview:

    def test_start_sets_default_preview(self):
        review = LogoReview.start("c1", "s1", "https://img.example.com/logo.png")
        assert review.status == "PENDING"
        assert review.tote_preview.logo_size == 20
        assert review.tote_preview.preview_image_url == "https://img.example.com/logo.png"

    def test_preview_keeps_written_values(self):
        review = LogoReview.start("c1", "s1", "https://img.example.com/logo.png")
        review.update_tote_preview(35, 10, 90)
        assert review.tote_preview.logo_size == 35
        assert review.tote_preview.logo_position.x == 10
        assert review.tote_preview.logo_position.y == 90

    @pytest.mark.parametrize("size, x, y", [(0, 50, 50), (120, 50, 50), (20, -5, 50), (20, 50, 101)])
    def test_preview_outside_print_area(self, size, x, y):
        review = LogoReview.start("c1", "s1", "https://img.example.com/logo.png")
        with pytest.raises(ValidationError):
            review.update_tote_preview(size, x, y)
        assert review.tote_preview.logo_size == 20

    def test_resubmit_returns_review_to_queue(self):
        review = LogoReview.start("c1", "s1", "https://img.example.com/logo.png")
        review.set_status("CHANGES_REQUESTED")
        review.resubmit("https://img.example.com/logo-v2.png")
        assert review.status == "PENDING"
        assert review.current_url == "https://img.example.com/logo-v2.png"

    def test_decided_review_cannot_be_resubmitted(self):
        review = LogoReview.start("c1", "s1", "https://img.example.com/logo.png")
        review.set_status("APPROVED")
        with pytest.raises(StateError):
            review.resubmit("https://img.example.com/logo-v2.png")


class TestUser:

    def test_otp_matches_until_expiry(self):
        now = utcnow()
        user = User(email="a@b.com", name="A", otp_code="123456", otp_expires_at=now + timedelta(minutes=10))
        assert user.otp_matches("123456", now)
        assert not user.otp_matches("654321", now)
        assert not user.otp_matches("123456", now + timedelta(minutes=11))
