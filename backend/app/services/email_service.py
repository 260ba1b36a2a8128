"""
Email Service for Campus Gate Pass
==================================
Handles gate pass emails:
- "Pending your approval" messages to the next approver
- Approval / rejection / check-out outcomes to the requester

Delivery goes over SMTP with aiosmtplib. Sending never raises: callers get
True/False and failures are logged.
"""

import html
import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Any

from app.core.config import settings
from app.core.logging_config import logger


_STAGE_TITLES = {
    "staff": "Staff",
    "hod": "HOD",
    "hostel_warden": "Hostel Warden",
    "academic_director": "Academic Director",
    "security": "Security",
}


def _layout(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background: #1e3a8a; color: white; padding: 24px; text-align: center; border-radius: 10px 10px 0 0; }}
            .content {{ background: #f9fafb; padding: 24px; border-radius: 0 0 10px 10px; }}
            .footer {{ text-align: center; margin-top: 24px; font-size: 12px; color: #6b7280; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h2>{title}</h2>
            </div>
            <div class="content">
                {body}
            </div>
            <div class="footer">
                <p>{settings.APP_NAME}</p>
            </div>
        </div>
    </body>
    </html>
    """


def _details(notice: Any) -> str:
    return f"""
        <p><strong>Type:</strong> {notice.type}</p>
        <p><strong>Reason:</strong> {html.escape(notice.reason or "")}</p>
        <p><strong>Dates:</strong> {notice.start_date:%d %b %Y %H:%M} to {notice.end_date:%d %b %Y %H:%M}</p>
        <p><strong>Current Status:</strong> {notice.status}</p>
    """


def _comments(notice: Any) -> str:
    lines = []
    for stage, comment in notice.comments:
        if comment:
            lines.append(f"<p><strong>{_STAGE_TITLES.get(stage, stage)} Comment:</strong> {html.escape(comment)}</p>")
    return "\n".join(lines)


class EmailService:
    """Async email service using SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        return bool(self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject

            # Add plain text version (fallback)
            if text_content:
                message.attach(MIMEText(text_content, "plain"))

            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True
            )

            logger.info(f"[Email/SMTP] Successfully sent email to {to_email}: {subject}")
            return True

        except Exception as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

    async def send_approval_pending_email(self, notice: Any, approver: Any, stage: str) -> bool:
        """Tell the next approver a gate pass is waiting on them"""
        title = _STAGE_TITLES.get(stage, stage)
        subject = f"Gate Pass #{notice.id} Pending Your Approval"
        body = f"""
            <p>Dear {html.escape(approver.name)},</p>
            <p>A gate pass request from <strong>{html.escape(notice.requester_name)}</strong> requires your approval as {title}.</p>
            {_details(notice)}
            {_comments(notice)}
            <p>Please log in to review this request.</p>
        """
        text = (
            f"Dear {approver.name},\n\n"
            f"A gate pass request from {notice.requester_name} requires your approval as {title}.\n"
            f"Reason: {notice.reason}\n"
        )
        return await self.send_email(approver.email, subject, _layout("Gate Pass Approval Required", body), text)

    async def send_outcome_email(self, notice: Any, recipient: Any) -> bool:
        """Tell the requester their gate pass was approved, rejected or used"""
        if notice.status == "approved":
            status_message = "has been APPROVED"
        elif notice.status.startswith("rejected_by_"):
            status_message = "has been REJECTED"
        elif notice.status == "used":
            status_message = "was used to check out of campus"
        else:
            status_message = "has been updated"

        subject = f"Gate Pass #{notice.id} Status Update"
        body = f"""
            <p>Dear {html.escape(recipient.name)},</p>
            <p>Your gate pass request (ID: {notice.id}) {status_message}.</p>
            {_details(notice)}
            {_comments(notice)}
            <p>Please log in to the system for more details.</p>
        """
        text = f"Dear {recipient.name},\n\nYour gate pass request (ID: {notice.id}) {status_message}.\n"
        return await self.send_email(recipient.email, subject, _layout("Gate Pass Status Update", body), text)


# Singleton instance
email_service = EmailService()
