"""email_service.py

Sends the library's notification emails through Flask-Mail.

Functions:
- send_contact_confirmation_email: acknowledges a contact-form message
- send_card_application_email: confirms a library card application was received
- send_card_approved_email: tells the applicant their card is active

User-supplied values are HTML-escaped before they go into a body.

Every sender returns (success, message) and never raises; callers treat email as an optional
side effect, so a failed send is logged and the primary write stays committed.
"""

import logging
from flask_mail import Mail, Message
from markupsafe import escape
from config import LIBRARY_NAME

mail = Mail()
logger = logging.getLogger(__name__)

FOOTER = """
                <hr style="border: none; border-top: 1px solid #ddd; margin: 20px 0;">
                <p style="color: #666; font-size: 12px;">This email was sent automatically, please do not reply.</p>
"""


def _send(subject, recipient, html):
    try:
        msg = Message(subject=f"{subject} - {LIBRARY_NAME}", recipients=[recipient], html=html)
        mail.send(msg)
        return True, "Email sent."
    except Exception as e:
        logger.warning("Failed to send '%s' email to %s: %s", subject, recipient, e)
        return False, f"Failed to send email: {str(e)}"


def send_contact_confirmation_email(email, name, subject, message):
    """Acknowledge a contact-form message.

    Args:
        email: sender's address
        name: sender's name
        subject: subject they wrote
        message: message body they wrote

    Returns:
        tuple: (success, message)
    """
    html = f"""
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <h2 style="color: #1e3a5f;">Thank you for contacting us, {escape(name)}!</h2>
                <p>We have received your message and our team will review it shortly.
                   We typically respond within 1-2 business days.</p>
                <div style="background-color: #f5f5f5; padding: 20px; margin: 20px 0;">
                    <p><strong>Subject:</strong> {escape(subject)}</p>
                    <p><strong>Message:</strong></p>
                    <p style="white-space: pre-wrap;">{escape(message)}</p>
                </div>
                {FOOTER}
            </div>
            """
    return _send("We received your message", email, html)


def send_card_application_email(application):
    """Confirm that a card application was received and is pending review."""
    html = f"""
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <h2 style="color: #1e3a5f;">Library card application received</h2>
                <p>Hello <strong>{escape(application.full_name)}</strong>,</p>
                <p>Your application has been received and is waiting for approval by the library.</p>
                <div style="background-color: #fff3cd; padding: 15px; border-left: 4px solid #ffc107; margin: 20px 0;">
                    <p><strong>Card number:</strong> {escape(application.card_number)}</p>
                    <p><strong>Status:</strong> pending</p>
                </div>
                {FOOTER}
            </div>
            """
    return _send("Library card application received", application.email, html)


def send_card_approved_email(application):
    """Tell the applicant their library card was approved.

    The card number doubles as the login credential, so it is repeated in the body.
    """
    valid_through = application.valid_through.strftime('%d/%m/%Y') if application.valid_through else '-'
    html = f"""
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <h2 style="color: #28a745;">Your library card is approved!</h2>
                <p>Hello <strong>{escape(application.full_name)}</strong>,</p>
                <div style="background-color: #d4edda; padding: 15px; border-left: 4px solid #28a745; margin: 20px 0;">
                    <p><strong>Card number:</strong> {escape(application.card_number)}</p>
                    <p><strong>Student ID:</strong> {escape(application.student_id)}</p>
                    <p><strong>Valid through:</strong> {valid_through}</p>
                </div>
                <p>Use your card number to sign in and borrow books.</p>
                {FOOTER}
            </div>
            """
    return _send("Library card approved", application.email, html)
