"""Email service using Brevo API for Sarvam"""

import os
import logging
import requests
import html
from datetime import datetime

import auth

# Configure logging
logger = logging.getLogger(__name__)

# Environment configuration
BREVO_API_KEY = os.getenv("BREVO_API_KEY")  # Your Brevo API key
FROM_EMAIL = os.getenv("FROM_EMAIL")  # Verified sender email in Brevo
FROM_NAME = os.getenv("FROM_NAME", "Sarvam Support")

# Brevo API endpoint
BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


def is_email_configured() -> bool:
    """Check if email service is properly configured"""
    return bool(BREVO_API_KEY and FROM_EMAIL)


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
    text_content: str
) -> bool:
    """
    Send an email via Brevo API

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML version of email body
        text_content: Plain text version of email body

    Returns:
        bool: True if email sent successfully, False otherwise
    """
    if not is_email_configured():
        logger.error("Email service not configured: BREVO_API_KEY and FROM_EMAIL required")
        return False

    try:
        headers = {
            "accept": "application/json",
            "api-key": BREVO_API_KEY,
            "content-type": "application/json"
        }

        payload = {
            "sender": {
                "name": FROM_NAME,
                "email": FROM_EMAIL
            },
            "to": [
                {
                    "email": to_email
                }
            ],
            "subject": subject,
            "htmlContent": html_content,
            "textContent": text_content
        }

        response = requests.post(
            BREVO_API_URL,
            json=payload,
            headers=headers,
            timeout=10
        )

        if response.status_code == 201:
            logger.info(f"Email sent successfully to {to_email} (Message ID: {response.json().get('messageId')})")
            return True
        else:
            logger.error(f"Brevo API error ({response.status_code}): {response.text}")
            return False

    except requests.exceptions.Timeout:
        logger.error("Brevo API request timed out")
        return False
    except requests.exceptions.RequestException as e:
        logger.error(f"Brevo API request failed: {e}")
        return False


async def send_otp_email(to_email: str, user_name: str, otp: str) -> bool:
    """
    Send the password reset OTP

    Args:
        to_email: User's email address
        user_name: User's full name
        otp: The plain one time password

    Returns:
        bool: True if email sent successfully
    """
    safe_user_name = html.escape(user_name)
    safe_otp = html.escape(otp)
    year = datetime.utcnow().year

    subject = "Sarvam - Password Reset OTP"

    html_content = f"""
    <div style="font-family: Arial, sans-serif; background: #f5f7fa; padding: 15px;">
      <div style="max-width: 500px; margin: auto; background: #ffffff; border-radius: 10px; padding: 30px;">
        <h2 style="text-align: center; color: #2d89ef;">Sarvam - OTP Verification</h2>
        <p style="font-size: 16px; color: #333;">Hello {safe_user_name},</p>
        <p style="font-size: 16px; color: #333;">
          Use the following One Time Password (OTP) to reset your password:
        </p>
        <div style="text-align: center; margin: 20px 0;">
          <span style="font-size: 28px; font-weight: bold; letter-spacing: 4px; color: #2d89ef;">{safe_otp}</span>
        </div>
        <p style="font-size: 14px; color: #777;">
          This OTP is valid for <strong>{auth.OTP_EXPIRE_MINUTES} minutes</strong>. Please do not share it with anyone.
        </p>
        <hr/>
        <p style="font-size: 12px; color: #aaa; text-align: center;">
          &copy; {year} Sarvam. All rights reserved.
        </p>
      </div>
    </div>
    """

    text_content = f"""
Hello {user_name},

Use the following One Time Password (OTP) to reset your password: {otp}

This OTP is valid for {auth.OTP_EXPIRE_MINUTES} minutes. Please do not share it with anyone.

---
(c) {year} Sarvam.
    """

    return await send_email(to_email, subject, html_content, text_content)


async def send_password_changed_notification(user_email: str, user_name: str) -> bool:
    """Tell the user their password was changed"""
    safe_user_name = html.escape(user_name)
    subject = "Your Sarvam Password Has Been Changed"

    html_content = f"""
    <div style="font-family: Arial, sans-serif; background: #f5f7fa; padding: 15px;">
      <div style="max-width: 500px; margin: auto; background: #ffffff; border-radius: 10px; padding: 30px;">
        <h2 style="text-align: center; color: #2d89ef;">Password Changed</h2>
        <p style="font-size: 16px; color: #333;">Hello {safe_user_name},</p>
        <p style="font-size: 16px; color: #333;">The password for your Sarvam account was just changed.</p>
        <p style="font-size: 14px; color: #777;">If you did not make this change, reset your password immediately.</p>
      </div>
    </div>
    """

    text_content = f"""
Hello {user_name},

The password for your Sarvam account was just changed.

If you did not make this change, reset your password immediately.
    """

    return await send_email(user_email, subject, html_content, text_content)
