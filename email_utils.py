import logging
from flask_mail import Mail, Message
from flask import current_app

# Initialize Mail globally; attached with mail.init_app(app)
mail = Mail()

logger = logging.getLogger(__name__)


def send_email(recipient: str, subject: str, body: str, is_html: bool = False) -> bool:
    """Send a basic email (text or HTML)."""
    try:
        msg = Message(
            subject=subject,
            recipients=[recipient],
            sender=current_app.config.get("MAIL_DEFAULT_SENDER")
        )
        if is_html:
            msg.html = body
        else:
            msg.body = body

        mail.send(msg)
        logger.info(f"Email sent to {recipient}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {recipient}: {e}")
        return False


def _link_email(heading: str, intro: str, link: str, button: str, expiry_note: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 560px; margin: 0 auto;">
        <h2 style="color: #4f46e5;">{heading}</h2>
        <p>{intro}</p>
        <p style="margin: 24px 0;">
            <a href="{link}" style="background: #4f46e5; color: #fff; padding: 12px 20px;
               border-radius: 6px; text-decoration: none;">{button}</a>
        </p>
        <p style="color: #6b7280; font-size: 13px;">{expiry_note}</p>
        <p style="color: #6b7280; font-size: 13px;">If the button does not work, open this link: {link}</p>
        <p>Culture Connect</p>
    </div>
    """


def send_password_reset_email(recipient: str, name: str, reset_link: str) -> bool:
    body = _link_email(
        "Reset your password",
        f"Hi {name}, we received a request to reset your Culture Connect password.",
        reset_link,
        "Reset Password",
        "This link expires in 1 hour. If you didn't ask for a reset you can ignore this email."
    )
    return send_email(recipient, "Culture Connect password reset", body, is_html=True)


def send_verification_email(recipient: str, name: str, verify_link: str) -> bool:
    body = _link_email(
        "Verify your email",
        f"Welcome to Culture Connect, {name}! Please confirm your university email address.",
        verify_link,
        "Verify Email",
        "This link expires in 24 hours."
    )
    return send_email(recipient, "Verify your Culture Connect email", body, is_html=True)
