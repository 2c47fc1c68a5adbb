"""
Email service for account notifications.

This module sends the welcome, email verification, password reset and
password change notifications over SMTP. A single EmailService is built at
application start and handed to routes through ``get_email_service``.
"""
import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Annotated

from fastapi import Depends, Request

from models import User
from .config import Settings

logger = logging.getLogger(__name__)


class EmailService:
    """
    Service class for handling email operations.

    Every send method returns True on success and False on failure; failures
    are logged, never raised.
    """

    def __init__(self, config: Settings):
        """Initialize email service with configuration from settings."""
        self.smtp_server = config.EMAIL_HOST
        self.smtp_port = config.EMAIL_PORT
        self.email_username = config.EMAIL_USERNAME
        self.email_password = config.EMAIL_APP_PASSWORD
        self.from_email = config.EMAIL_FROM
        self.from_name = config.EMAIL_FROM_NAME
        self.client_url = config.CLIENT_URL.rstrip("/")

    def send_email(self, to_email: str, subject: str, text_content: str, html_content: str) -> bool:
        """
        Send a multipart (plain text + HTML) message.

        Args:
            to_email: Recipient email address.
            subject: Message subject.
            text_content: Plain text body.
            html_content: HTML body.

        Returns:
            True if email sent successfully, False otherwise.
        """
        try:
            message = MIMEMultipart("alternative")
            message["Subject"] = subject
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email

            message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
                server.starttls()
                if self.email_username:
                    server.login(self.email_username, self.email_password)
                server.send_message(message)

            logger.info(f"Email '{subject}' sent successfully to {to_email}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email '{subject}' to {to_email}: {str(e)}")
            return False

    # ========== Account Notifications ==========

    def send_welcome_email(self, user: User) -> bool:
        dashboard_url = f"{self.client_url}/dashboard"
        return self.send_email(
            user.email,
            "Welcome to MindCare - Start Your Wellness Journey",
            f"Welcome to MindCare, {user.first_name}! Thank you for joining our community. "
            f"Access your dashboard at {dashboard_url}",
            self._wrap_html(
                "Welcome to MindCare",
                user,
                f"""
                <p>Thank you for joining our community of support and healing.</p>
                <ul>
                    <li>Track your mood and emotional patterns</li>
                    <li>Connect with our supportive community</li>
                    <li>Find professional therapists when needed</li>
                </ul>
                <p><a href="{dashboard_url}" class="button">Go to Your Dashboard</a></p>
                """,
            ),
        )

    def send_verification_email(self, user: User, verification_url: str, resend: bool = False) -> bool:
        subject = "Verify Your Email - MindCare"
        if resend:
            subject = "Resend: " + subject
        return self.send_email(
            user.email,
            subject,
            f"Please verify your email by clicking: {verification_url}\n"
            f"This link will expire in 24 hours.",
            self._wrap_html(
                "Verify Your Email",
                user,
                f"""
                <p>Please click the link below to verify your email address:</p>
                <p><a href="{verification_url}" class="button">Verify Email</a></p>
                <p>This link will expire in 24 hours.</p>
                """,
            ),
        )

    def send_password_reset_email(self, user: User, reset_url: str) -> bool:
        return self.send_email(
            user.email,
            "Reset Your MindCare Password",
            f"Reset your MindCare password by clicking: {reset_url}\n"
            f"This link will expire in 10 minutes.",
            self._wrap_html(
                "Password Reset",
                user,
                f"""
                <p>You requested to reset your password for your MindCare account.</p>
                <p>This link will expire in <strong>10 minutes</strong> and can only be used once.</p>
                <p><a href="{reset_url}" class="button">Reset Password</a></p>
                <p>If you didn't request this password reset, please ignore this email.</p>
                """,
            ),
        )

    def send_password_changed_email(self, user: User) -> bool:
        return self.send_email(
            user.email,
            "Password Changed - MindCare",
            "Your password has been successfully changed.",
            self._wrap_html("Password Changed", user, "<p>Your password has been successfully changed.</p>"),
        )

    def send_password_reset_confirmation(self, user: User) -> bool:
        return self.send_email(
            user.email,
            "Password Reset Confirmation - MindCare",
            "Your password has been successfully reset.",
            self._wrap_html("Password Reset Successful", user, "<p>Your password has been successfully reset.</p>"),
        )

    def _wrap_html(self, title: str, user: User, body: str) -> str:
        """Generate the shared HTML frame around a message body."""
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <title>{title}</title>
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 30px; text-align: center; }}
                .content {{ background: #f9f9f9; padding: 30px; }}
                .button {{ display: inline-block; padding: 12px 24px; background: #667eea; color: white; text-decoration: none; border-radius: 5px; }}
                .footer {{ text-align: center; color: #666; font-size: 12px; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header"><h1>{title}</h1></div>
                <div class="content">
                    <h2>Hello {html.escape(user.first_name)},</h2>
                    {body}
                    <p>Take care,<br>The MindCare Team</p>
                </div>
                <div class="footer">
                    <p>This email was sent to {html.escape(user.email)}</p>
                </div>
            </div>
        </body>
        </html>
        """


def get_email_service(request: Request) -> EmailService:
    """Resolve the application's email transport."""
    return request.app.state.email_service


Mailer = Annotated[EmailService, Depends(get_email_service)]
