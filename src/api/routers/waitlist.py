from fastapi import APIRouter, Depends

from api.deps import get_current_user, require_admin
from api.schemas import RedeemRequest, WaitlistJoin, WaitlistStatusUpdate, envelope, public_entry
from core.dependencies import get_waitlist_service
from models.user import User
from services.waitlist_service import WaitlistService

router = APIRouter(prefix="/waitlist", tags=["waitlist"])


@router.get("")
def list_entries(_: User = Depends(require_admin),
                 waitlist_service: WaitlistService = Depends(get_waitlist_service)):
    return envelope([public_entry(e) for e in waitlist_service.list_all()])


@router.get("/cause/{cause_id}")
def list_for_cause(cause_id: str, user: User = Depends(get_current_user),
                   waitlist_service: WaitlistService = Depends(get_waitlist_service)):
    return envelope([public_entry(e) for e in waitlist_service.list_by_cause(cause_id, user)])


@router.get("/user/{user_id}")
def list_for_user(user_id: str, user: User = Depends(get_current_user),
                  waitlist_service: WaitlistService = Depends(get_waitlist_service)):
    return envelope([public_entry(e) for e in waitlist_service.list_by_user(user_id, user)])


@router.get("/magic-link-details/{token}")
def magic_link_details(token: str, waitlist_service: WaitlistService = Depends(get_waitlist_service)):
    return envelope(waitlist_service.inspect(token))


@router.post("/verify-magic-link", status_code=201)
def redeem_magic_link(body: RedeemRequest, waitlist_service: WaitlistService = Depends(get_waitlist_service)):
    claim = waitlist_service.redeem(body.token, body.shipping_address, body.phone, body.organization)
    return envelope(claim, "Claim created from magic link")


@router.get("/{entry_id}")
def get_entry(entry_id: str, user: User = Depends(get_current_user),
              waitlist_service: WaitlistService = Depends(get_waitlist_service)):
    return envelope(public_entry(waitlist_service.get(entry_id, user)))


@router.post("", status_code=201)
def join(body: WaitlistJoin, user: User = Depends(get_current_user),
         waitlist_service: WaitlistService = Depends(get_waitlist_service)):
    entry = waitlist_service.join(body.cause_id, user, body.model_dump(exclude={"cause_id"}))
    return envelope(public_entry(entry), f"Joined the waitlist at position {entry.position}")


@router.put("/{entry_id}/status")
def set_status(entry_id: str, body: WaitlistStatusUpdate, _: User = Depends(require_admin),
               waitlist_service: WaitlistService = Depends(get_waitlist_service)):
    return envelope(public_entry(waitlist_service.set_status(entry_id, body.status)))


@router.post("/{entry_id}/send-magic-link")
def send_magic_link(entry_id: str, _: User = Depends(require_admin),
                    waitlist_service: WaitlistService = Depends(get_waitlist_service)):
    promotion = waitlist_service.promote(entry_id)
    message = "Magic link sent" if promotion.email_queued else "Magic link created, but the email could not be queued"
    return envelope(
        {"entry": public_entry(promotion.entry), "magic_link": promotion.magic_link,
         "email_queued": promotion.email_queued},
        message,
    )
