import pytest

from core.errors import NotFoundError, StateError
from models.order import SponsorshipDetails
from services.sponsorship_service import SponsorshipService

CAUSE_FIELDS = {
    "title": "Clean Water",
    "description": "Wells for rural schools",
    "story": "Every school deserves clean water.",
    "image_url": "https://img.example.com/water.png",
    "category": "environment",
    "goal": 5000,
}


class TestSponsorshipFlow:

    def test_clean_water_scenario(self, cause_service, sponsorship_service, causes, make_user):
        claimer = make_user(role="claimer")
        sponsor_user = make_user(role="sponsor")

        cause = cause_service.submit(dict(CAUSE_FIELDS), claimer)
        cause_service.approve(cause.cause_id)

        first = sponsorship_service.add_sponsorship(cause.cause_id, {"name": "Acme", "amount": 3000}, sponsor_user)
        stored = causes.require(cause.cause_id)
        assert first.status == "pending"
        assert stored.raised == 0
        assert stored.status == "open"

        stored = sponsorship_service.approve_sponsor(cause.cause_id, first.sponsor_id)
        assert stored.raised == 3000
        assert stored.status == "open"

        second = sponsorship_service.add_sponsorship(cause.cause_id, {"name": "Globex", "amount": 2000}, sponsor_user)
        stored = sponsorship_service.approve_sponsor(cause.cause_id, second.sponsor_id)
        assert stored.raised == 5000
        assert stored.status == "sponsored"

    def test_sponsoring_closed_cause(self, sponsorship_service, make_cause):
        cause = make_cause(status="sponsored")
        with pytest.raises(StateError):
            sponsorship_service.add_sponsorship(cause.cause_id, {"name": "Acme", "amount": 10})

    def test_unknown_cause(self, sponsorship_service):
        with pytest.raises(NotFoundError):
            sponsorship_service.add_sponsorship("missing", {"name": "Acme", "amount": 10})

    def test_rejecting_approved_sponsor_lowers_raised(self, sponsorship_service, make_cause):
        cause = make_cause()
        sponsor = sponsorship_service.add_sponsorship(cause.cause_id, {"name": "Acme", "amount": 700})
        sponsorship_service.approve_sponsor(cause.cause_id, sponsor.sponsor_id)

        stored = sponsorship_service.reject_sponsor(cause.cause_id, sponsor.sponsor_id, "Chargeback")
        assert stored.raised == 0
        assert stored.find_sponsor(sponsor.sponsor_id).rejection_reason == "Chargeback"

    def test_list_pending(self, sponsorship_service, make_cause):
        cause = make_cause()
        pending = sponsorship_service.add_sponsorship(cause.cause_id, {"name": "Acme", "amount": 10})
        approved = sponsorship_service.add_sponsorship(cause.cause_id, {"name": "Globex", "amount": 10})
        sponsorship_service.approve_sponsor(cause.cause_id, approved.sponsor_id)

        queue = sponsorship_service.list_pending()
        assert [(item.cause_id, item.sponsor.sponsor_id) for item in queue] == [(cause.cause_id, pending.sponsor_id)]
        assert queue[0].cause_title == "Clean Water"

    def test_logo_opens_review(self, sponsorship_service, reviews, make_cause):
        cause = make_cause()
        sponsor = sponsorship_service.add_sponsorship(
            cause.cause_id, {"name": "Acme", "amount": 10, "logo": "https://img.example.com/acme.png"}
        )

        review = reviews.require(sponsor.logo_review_id)
        assert review is not None
        assert sponsor.logo_review_id == review.review_id
        assert sponsor.logo_status == "PENDING"
        assert sponsor.display_logo is None


class TestConcurrentApprovals:

    def test_both_approvals_land(self, sponsorship_service, causes, make_cause):
        cause = make_cause(goal=10000)
        first = sponsorship_service.add_sponsorship(cause.cause_id, {"name": "Acme", "amount": 3000})
        second = sponsorship_service.add_sponsorship(cause.cause_id, {"name": "Globex", "amount": 2000})

        interleaved = []

        def approve_first(doc):
            # The other approval commits between our read and our write
            if not interleaved:
                interleaved.append(True)
                sponsorship_service.approve_sponsor(cause.cause_id, second.sponsor_id)
            doc.approve_sponsor(first.sponsor_id)

        causes.mutate(cause.cause_id, approve_first)

        stored = causes.require(cause.cause_id)
        assert stored.raised == 5000
        assert {s.status for s in stored.sponsors} == {"approved"}


class TestPaidSponsorship:

    def details(self, **overrides):
        return SponsorshipDetails(**{
            "organization_name": "Acme",
            "email": "billing@acme.com",
            "tote_quantity": 25,
            **overrides,
        })

    def test_amount_follows_tote_quantity(self, sponsorship_service, make_cause):
        cause = make_cause()
        sponsor = sponsorship_service.add_sponsorship_post_payment(
            cause.cause_id, self.details(), sponsor_id="s1", order_id="pi_1"
        )
        assert sponsor.amount == 250
        assert sponsor.status == "pending"
        assert sponsor.order_id == "pi_1"

    def test_repeated_call_records_one_sponsor(self, sponsorship_service, causes, reviews, make_cause):
        cause = make_cause()
        details = self.details(logo_url="https://img.example.com/acme.png")
        sponsorship_service.add_sponsorship_post_payment(cause.cause_id, details, sponsor_id="s1", order_id="pi_1")
        sponsorship_service.add_sponsorship_post_payment(cause.cause_id, details, sponsor_id="s1", order_id="pi_1")

        assert len(causes.require(cause.cause_id).sponsors) == 1
        assert len(reviews.list_all()) == 1

    def test_auto_approval_counts_towards_goal(self, causes, logo_review_service, make_cause):
        service = SponsorshipService(causes, logo_review_service, tote_unit_price=10, auto_approve_after_payment=True)
        cause = make_cause(goal=250)

        service.add_sponsorship_post_payment(cause.cause_id, self.details(), sponsor_id="s1", order_id="pi_1")

        stored = causes.require(cause.cause_id)
        assert stored.raised == 250
        assert stored.status == "sponsored"
