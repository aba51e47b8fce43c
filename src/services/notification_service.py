import json
import logging
from pathlib import Path

from botocore.exceptions import BotoCoreError, ClientError
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.errors import UpstreamError

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
FALLBACK_TEMPLATE = "generic.html"

# Job types handled by the notification worker
MAGIC_LINK = "MAGIC_LINK"
CLAIM_SHIPPED = "CLAIM_SHIPPED"
RECEIPT = "RECEIPT"
TEMPLATED = "TEMPLATED"


def build_template_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(["html"]),
    )


class NotificationService:
    """Transactional email over SES with Jinja2 HTML bodies."""

    def __init__(self, client, from_email: str, templates: Environment | None = None):
        self.ses_client = client
        self.from_email = from_email
        self.templates = templates or build_template_env()

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=4),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(ClientError),
        reraise=True,
    )
    def send_email(self, email_to: str, subject: str, html: str, text: str | None = None):
        logger.info(f"Attempting to send '{subject}' to {email_to}")

        body = {"Html": {"Data": html, "Charset": "UTF-8"}}
        if text:
            body["Text"] = {"Data": text, "Charset": "UTF-8"}

        response = self.ses_client.send_email(
            Source=self.from_email,
            Destination={"ToAddresses": [email_to]},
            Message={
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": body,
            },
        )

        logger.info(f"Successfully sent '{subject}' to {email_to}")
        return response.get("MessageId")

    def render(self, template: str, data: dict) -> str:
        name = template if template.endswith(".html") else f"{template}.html"
        try:
            return self.templates.get_template(name).render(**data)
        except TemplateNotFound:
            logger.warning(f"Template {name} not found, using {FALLBACK_TEMPLATE}")
            return self.templates.get_template(FALLBACK_TEMPLATE).render(**data)

    def send_templated(self, email_to: str, subject: str, template: str, data: dict | None = None):
        data = {"subject": subject, **(data or {})}
        return self.send_email(email_to, subject, self.render(template, data))

    def send_otp(self, email_to: str, code: str, ttl_minutes: int):
        html = self.render("otp", {"code": code, "ttl_minutes": ttl_minutes})
        text = f"Your verification code is {code}. It expires in {ttl_minutes} minutes."
        return self.send_email(email_to, "Your Verification Code", html, text)

    def send_magic_link(self, email_to: str, full_name: str, cause_title: str, link: str, expires_at: str):
        html = self.render("magic_link", {
            "full_name": full_name,
            "cause_title": cause_title,
            "link": link,
            "expires_at": expires_at,
        })
        return self.send_email(email_to, "Your Cause is Now Available!", html)

    def send_claim_shipped(self, email_to: str, full_name: str, cause_title: str,
                           tracking_number: str, tracking_url: str | None = None):
        html = self.render("claim_shipped", {
            "full_name": full_name,
            "cause_title": cause_title,
            "tracking_number": tracking_number,
            "tracking_url": tracking_url,
        })
        return self.send_email(email_to, "Your Tote Has Shipped", html)

    def send_payment_receipt(self, email_to: str, sponsor_name: str, cause_title: str,
                             amount_minor: int, currency: str, order_id: str):
        amount = f"{(amount_minor / 100):.2f} {currency.upper()}"
        html = self.render("receipt", {
            "sponsor_name": sponsor_name,
            "cause_title": cause_title,
            "amount": amount,
            "order_id": order_id,
        })
        return self.send_email(email_to, "Your Sponsorship Payment Receipt", html)

    def dispatch(self, job: dict):
        """Sends the email described by a queued job."""
        job_type = job.get("type")
        if job_type == MAGIC_LINK:
            return self.send_magic_link(job["email_to"], job["full_name"], job["cause_title"],
                                        job["link"], job["expires_at"])
        if job_type == CLAIM_SHIPPED:
            return self.send_claim_shipped(job["email_to"], job["full_name"], job["cause_title"],
                                           job["tracking_number"], job.get("tracking_url"))
        if job_type == RECEIPT:
            return self.send_payment_receipt(job["email_to"], job["sponsor_name"], job["cause_title"],
                                             job["amount_minor"], job["currency"], job["order_id"])
        if job_type == TEMPLATED:
            return self.send_templated(job["email_to"], job["subject"], job["template"], job.get("data"))
        # Unknown types are acknowledged, not redelivered
        logger.warning(f"Skipping notification job with unknown type: {job_type}")
        return None

    def send_direct(self, email_to: str, subject: str, template: str, data: dict | None = None):
        """Synchronous send for the admin endpoint; failures surface as UpstreamError."""
        try:
            return self.send_templated(email_to, subject, template, data)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to send email to {email_to}: {e}")
            raise UpstreamError("Failed to send email")


class NotificationQueue:
    """Queues emails that must go out after a write has committed.

    Enqueue failures are logged and reported to the caller, never raised:
    the committed write stays the source of truth.
    """

    def __init__(self, sqs_client, queue_url: str):
        self.sqs_client = sqs_client
        self.queue_url = queue_url

    def enqueue(self, job: dict) -> bool:
        try:
            self.sqs_client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(job, default=str),
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"SQS Error queueing {job.get('type')} notification: {e}")
            return False
        logger.info(f"Queued {job.get('type')} notification for {job.get('email_to')}")
        return True
