"""Email service for transactional emails sent from background fan-out jobs."""

import html
import logging
import os
import smtplib
import socket
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

logger = logging.getLogger(__name__)


class EmailService:
    """
    SMTP email sender.

    When SMTP credentials are missing the service runs in dev mode: messages
    are logged instead of sent and every send reports success.
    """

    def __init__(self):
        self.smtp_host = os.getenv('SMTP_HOST', 'smtp.gmail.com')
        self.smtp_port = int(os.getenv('SMTP_PORT', '587'))
        self.smtp_user = os.getenv('SMTP_USER', '')
        self.smtp_password = os.getenv('SMTP_PASSWORD', '')
        self.from_email = os.getenv('FROM_EMAIL', self.smtp_user)
        self.from_name = os.getenv('FROM_NAME', 'Listings')
        # Timeout for SMTP operations (in seconds)
        self.smtp_timeout = int(os.getenv('SMTP_TIMEOUT', '10'))

    @property
    def configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def _create_connection(self):
        """Create SMTP connection with timeout."""
        server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.smtp_timeout)
        server.starttls()
        if self.smtp_user and self.smtp_password:
            server.login(self.smtp_user, self.smtp_password)
        return server

    @staticmethod
    def _as_html(text_content):
        body = html.escape(text_content).replace('\n', '<br>')
        return (
            '<!DOCTYPE html><html><head><meta charset="utf-8"></head>'
            '<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; '
            f'max-width: 600px; margin: 0 auto; padding: 20px;">{body}</body></html>'
        )

    def send_email(self, to_email, subject, text_content, html_content=None):
        """
        Send an email.

        Args:
            to_email: Recipient email address
            subject: Email subject
            text_content: Plain text body
            html_content: HTML body (optional, derived from the text when omitted)

        Returns:
            bool: True if sent successfully, False otherwise
        """
        if not to_email:
            logger.warning(f"Skipping email '{subject}': no recipient")
            return False

        if not self.configured:
            logger.info(f"[DEV MODE] Email to {to_email}: {subject}")
            logger.debug(text_content)
            return True

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email
            msg.attach(MIMEText(text_content, 'plain', 'utf-8'))
            msg.attach(MIMEText(html_content or self._as_html(text_content), 'html', 'utf-8'))

            server = self._create_connection()
            server.sendmail(self.from_email, to_email, msg.as_string())
            server.quit()

            logger.info(f"Sent email '{subject}' to {to_email}")
            return True

        except socket.timeout:
            logger.error(f"SMTP connection timed out after {self.smtp_timeout}s")
            return False
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

    def send_new_listing_email(self, user, listing):
        lines = [
            f"Name: {listing.name or 'N/A'}",
            f"Price: {listing.price if listing.price is not None else 'N/A'}",
            f"Description: {listing.description or 'N/A'}",
            f"Location: {', '.join(listing.location or []) or 'N/A'}",
            f"Facilities: {', '.join(listing.facilities or []) or 'N/A'}",
            f"Age groups: {', '.join(listing.agegroup or []) or 'N/A'}",
            f"Operating hours: {', '.join(listing.operating_hours or []) or 'N/A'}",
        ]
        body = (
            f"Hello {user.fname or 'there'},\n\n"
            f"A new listing has been added. Here are the details:\n\n"
            + '\n'.join(lines)
            + "\n\nBest regards,\nYour Team"
        )
        return self.send_email(user.email, 'New Listing Available - Full Details', body)

    def send_booking_received_email(self, user, booking, listing):
        body = (
            f"Hello {user.fname or 'Customer'},\n\n"
            f"We have received your booking request for: {listing.name}. "
            f"It is now pending confirmation.\n\n"
            f"Requested Booking Date: {booking.booking_date or 'N/A'}"
        )
        return self.send_email(user.email, 'Booking Request Received', body)

    def send_booking_admin_email(self, admin_email, user, booking, listing):
        body = (
            f"Hello Admin,\n\nA new booking requires your confirmation.\n\n"
            f"Listing: {listing.name}\n"
            f"Customer: {user.fname} {user.lname} ({user.email})\n"
            f"Booking Date: {booking.booking_date or 'N/A'}\n"
            f"Booking Hours: {booking.booking_hours or 'N/A'}\n"
            f"Guests: {booking.number_of_persons or 'N/A'}"
        )
        return self.send_email(admin_email, 'New Booking - Confirmation Required', body)

    def send_booking_status_email(self, user, booking, listing):
        body = (
            f"Hello {user.fname or 'Customer'},\n\n"
            f"Your booking for {listing.name} is now {booking.status}.\n"
            f"Payment: {booking.payment_method}"
        )
        return self.send_email(user.email, f'Booking {booking.status.title()}', body)

    def send_review_admin_email(self, admin_email, user, review, listing):
        body = (
            f"Hello Admin,\n\nA new review requires approval.\n\n"
            f"Listing: {listing.name}\n"
            f"Reviewer: {user.fname} {user.lname} ({user.email})\n"
            f"Rating: {review.rating}\n"
            f"Comment: {review.comment or 'N/A'}"
        )
        return self.send_email(admin_email, 'New Review - Approval Required', body)

    def send_notification_email(self, user, notification):
        body = f"Hello {user.fname or 'there'},\n\n{notification.message}"
        return self.send_email(user.email, notification.title, body)


# Singleton instance
email_service = EmailService()
