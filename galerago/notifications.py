# galerago/notifications.py
import logging
import smtplib
from email.message import EmailMessage

from galerago.config import settings

logger = logging.getLogger(__name__)

STATUS_SUBJECTS = {
    "pending": "Booking received",
    "confirmed": "Booking confirmed",
    "completed": "Thanks for joining us! Leave a review",
    "cancelled": "Booking cancelled",
}


def send_email(to_email: str, subject: str, body: str) -> bool:
    """
    Deliver one message over SMTP. Runs as a background task after the
    response, so failures are logged and reported as False, never raised.
    """
    if not settings.SMTP_EMAIL or not settings.SMTP_PASSWORD:
        logger.debug("SMTP not configured, skipping email to %s", to_email)
        return False

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.SMTP_EMAIL
    msg["To"] = to_email
    msg.set_content(body)

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as smtp:
            smtp.starttls()
            smtp.login(settings.SMTP_EMAIL, settings.SMTP_PASSWORD)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send email to %s", to_email)
        return False
    logger.info("Email '%s' sent to %s", subject, to_email)
    return True


def booking_status_message(booking_reference: str, status: str, reason: str = None):
    subject = f"{STATUS_SUBJECTS.get(status, 'Booking update')} - {booking_reference}"
    lines = [
        "Hello!",
        "",
        f"Your booking {booking_reference} is now {status}.",
    ]
    if status == "cancelled" and reason:
        lines.append(f"Reason: {reason}")
    if status == "completed":
        lines.append(f"Tell other travellers about it: {settings.FRONTEND_BASE_URL}/review/{booking_reference}")
    lines += ["", f"Manage your bookings at {settings.FRONTEND_BASE_URL}/bookings"]
    return subject, "\n".join(lines)


def notify_booking_status(to_email: str, booking_reference: str, status: str, reason: str = None) -> bool:
    subject, body = booking_status_message(booking_reference, status, reason)
    return send_email(to_email, subject, body)
