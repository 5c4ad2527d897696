import logging
import smtplib
from email.message import EmailMessage

from ..core.config import get_settings

logger = logging.getLogger(__name__)


def send_request_decision(
    recipient: str, full_name: str, approved: bool, rejection_reason: str | None = None
) -> None:
    if approved:
        subject = "Tu solicitud de entrenador principal fue aprobada"
        body = (
            f"Hola {full_name}!\n\nUn administrador aprobó tu solicitud.\n"
            f"Ya puedes acceder a la gestión de tu club.\n\n"
        )
        cta = _build_cta_url("/dashboard")
    else:
        subject = "Tu solicitud de entrenador principal fue rechazada"
        body = f"Hola {full_name}.\n\nTu solicitud fue rechazada.\n"
        if rejection_reason:
            body += f"Motivo: {rejection_reason}\n"
        body += "Puedes enviar información adicional para una nueva revisión.\n\n"
        cta = _build_cta_url("/login")
    if cta:
        body += f"Accede aquí: {cta}\n"
    _send_email(recipient=recipient, subject=subject, body=body)


def send_assignment_decision(recipient: str, full_name: str, club_name: str, approved: bool) -> None:
    if approved:
        subject = f"Ya formas parte de {club_name}"
        body = f"Hola {full_name}!\n\nEl entrenador principal de {club_name} aprobó tu acceso.\n"
        cta = _build_cta_url("/dashboard")
        if cta:
            body += f"\nComienza aquí: {cta}\n"
    else:
        subject = f"Tu solicitud para unirte a {club_name} fue rechazada"
        body = f"Hola {full_name}.\n\nEl club {club_name} rechazó tu solicitud de acceso.\n"
    _send_email(recipient=recipient, subject=subject, body=body)


def send_join_request(recipients: list[str], coach_name: str, club_name: str) -> None:
    subject = "Nuevo entrenador solicita unirse a tu club"
    body = (
        f"{coach_name} se registró con el código de {club_name}.\n"
        f"Revisa la solicitud para aprobar o rechazar su acceso.\n"
    )
    cta = _build_cta_url("/coach/club")
    if cta:
        body += f"\nGestiona las solicitudes aquí: {cta}\n"
    for recipient in recipients:
        _send_email(recipient=recipient, subject=subject, body=body)


def _build_cta_url(path: str) -> str | None:
    settings = get_settings()
    if not settings.notification_app_base_url:
        return None
    return f"{settings.notification_app_base_url.rstrip('/')}{path}"


def _send_email(recipient: str, subject: str, body: str) -> None:
    settings = get_settings()
    if not settings.smtp_host or not settings.email_sender:
        logger.warning("SMTP not configured, skipping email to %s", recipient)
        return

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = settings.email_sender
    message["To"] = recipient
    message.set_content(body)

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as smtp:
            if settings.smtp_starttls:
                smtp.starttls()
            if settings.smtp_username and settings.smtp_password:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:  # pragma: no cover - network failures
        logger.error("Failed to send email to %s: %s", recipient, exc)
