"""
Email Service
Sends expense lifecycle e-mails to the users an event concerns
"""

import html
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Callable, Optional

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from cofounder_expenses.config.database import SessionLocal
from cofounder_expenses.config.settings import settings
from cofounder_expenses.services.expense_workflow import ExpenseEvent
from cofounder_expenses.services.notification_service import Delivery, notification_service
from cofounder_expenses.utils.helpers import format_currency, format_date
from cofounder_expenses.utils.logger import setup_logger

logger = setup_logger()


class EmailService:
    """Email service for sending expense notifications"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        """Initialize email service with SMTP configuration"""
        self.session_factory = session_factory
        self.smtp_server = settings.SMTP_SERVER
        self.smtp_port = settings.SMTP_PORT
        self.smtp_username = settings.SMTP_USERNAME
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.FROM_EMAIL or self.smtp_username
        self.from_name = settings.FROM_NAME

        # Check if email is configured
        self.is_configured = bool(self.smtp_username and self.smtp_password)

        if not self.is_configured:
            logger.warning("Email service not configured. Set SMTP credentials in .env file.")

    def _send_email(self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None) -> bool:
        """
        Send email via SMTP

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML email body
            text_content: Plain text fallback (optional)

        Returns:
            bool: True if the message was handed to the SMTP server
        """
        if not self.is_configured:
            logger.warning(f"Email not sent to {to_email} - SMTP not configured")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, 'plain'))
            msg.attach(MIMEText(html_content, 'html'))

            with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            logger.info(f"Email sent to {to_email}: {subject}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {str(e)}")
            return False

    def render(self, delivery: Delivery, recipient_name: str):
        """
        Build the HTML and plain-text bodies for one recipient

        Returns:
            Tuple of (html_content, text_content)
        """
        expense = delivery.expense
        amount = format_currency(expense.amount, expense.owner.company.currency)
        link = f"{settings.APP_URL}/expenses/{expense.id}"
        # Descriptions, reasons and names are user input
        safe = {
            "title": html.escape(delivery.title),
            "recipient": html.escape(recipient_name),
            "message": html.escape(delivery.message),
            "owner": html.escape(expense.owner.name),
            "category": html.escape(expense.category),
        }

        html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: #1f2937; color: white; padding: 20px; text-align: center; border-radius: 5px 5px 0 0; }}
        .content {{ background: #f9f9f9; padding: 20px; border: 1px solid #ddd; }}
        .details {{ background: white; padding: 15px; margin: 15px 0; border-left: 4px solid #1f2937; }}
        .label {{ font-weight: bold; color: #555; display: inline-block; width: 120px; }}
        .footer {{ background: #333; color: white; padding: 15px; text-align: center; font-size: 12px; border-radius: 0 0 5px 5px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>{safe['title']}</h1>
        </div>
        <div class="content">
            <p>Hi {safe['recipient']},</p>
            <p>{safe['message']}</p>
            <div class="details">
                <div><span class="label">Submitted by:</span> {safe['owner']}</div>
                <div><span class="label">Amount:</span> {amount}</div>
                <div><span class="label">Category:</span> {safe['category']}</div>
                <div><span class="label">Date:</span> {format_date(expense.date)}</div>
            </div>
            <p><a href="{link}">View expense</a></p>
        </div>
        <div class="footer">
            <p>This is an automated message from {self.from_name}</p>
        </div>
    </div>
</body>
</html>
"""

        text_content = f"""
{delivery.title.upper()}

Hi {recipient_name},

{delivery.message}

- Submitted by: {expense.owner.name}
- Amount: {amount}
- Category: {expense.category}
- Date: {format_date(expense.date)}

View expense: {link}
"""
        return html_content, text_content

    def deliver(self, event: ExpenseEvent) -> int:
        """Send one e-mail per recipient of `event`; returns how many went out"""
        if not self.is_configured:
            logger.debug(f"Skipping e-mail for {event.type.value}: SMTP not configured")
            return 0

        db = self.session_factory()
        try:
            delivery = notification_service.prepare(db, event)
            if delivery is None:
                return 0

            sent = 0
            for user in delivery.recipients:
                html_content, text_content = self.render(delivery, user.name)
                if self._send_email(user.email, delivery.title, html_content, text_content):
                    sent += 1
            return sent
        finally:
            db.close()

    async def handle_event(self, event: ExpenseEvent):
        """Dispatcher subscriber; SMTP is blocking so it runs in the threadpool"""
        await run_in_threadpool(self.deliver, event)


# Create singleton instance
email_service = EmailService()
