# Email copies of customer notifications
import os
import resend
from html import escape
from typing import Dict
from dotenv import load_dotenv

load_dotenv()


class EmailService:
    """
    Centralized email service using Resend
    """

    def __init__(self):
        """Initialize Resend with API key"""
        self.api_key = os.getenv("RESEND_API_KEY")
        self.from_email = os.getenv("RESEND_FROM_EMAIL", "onboarding@resend.dev")
        self.frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000")

        if os.getenv("TESTING") in ("1", "True") or not self.api_key:
            self.disabled = True
            print("⚠️ EmailService running in TEST MODE — emails are not sent")
            return

        self.disabled = False
        resend.api_key = self.api_key

    def send_test_email(self, to_email: str) -> Dict:
        """
        Send a test email to verify Resend is working

        Args:
            to_email: Recipient email address

        Returns:
            Dict with 'success' boolean and 'message' or 'error'
        """
        return self._send(
            to_email,
            "Test Email from the Tailor Shop",
            "<html><body><h1>Success!</h1><p>Email delivery is working.</p></body></html>",
        )

    def send_status_update(self, to_email, customer_name, title, body) -> Dict:
        """
        Send the email copy of an in-app notification (order status, refunds,
        feedback replies).
        """
        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="margin: 0; padding: 0; font-family: 'Segoe UI', Arial, sans-serif; background-color: #f4efe8;">
            <table width="100%" cellpadding="0" cellspacing="0" style="padding: 30px 20px;">
                <tr>
                    <td align="center">
                        <table width="600" cellpadding="0" cellspacing="0" style="background-color: #ffffff; border-radius: 12px; overflow: hidden;">
                            <tr>
                                <td style="background-color: #5b4636; padding: 30px 40px; text-align: center;">
                                    <h2 style="color: #ffffff; margin: 0; font-size: 22px;">{escape(title)}</h2>
                                </td>
                            </tr>
                            <tr>
                                <td style="padding: 35px 40px;">
                                    <p style="color: #2d3748; font-size: 16px; margin: 0 0 12px 0;">
                                        Hi <strong>{escape(customer_name or "there")}</strong>,
                                    </p>
                                    <p style="color: #4a5568; font-size: 15px; line-height: 1.7; margin: 0 0 28px 0;">
                                        {escape(body or title)}
                                    </p>
                                    <a href="{self.frontend_url}/orders"
                                       style="display: inline-block; padding: 14px 36px; background-color: #5b4636; color: #ffffff; text-decoration: none; border-radius: 8px; font-weight: 600;">
                                        View My Orders
                                    </a>
                                </td>
                            </tr>
                        </table>
                    </td>
                </tr>
            </table>
        </body>
        </html>
        """
        return self._send(to_email, title, html_content)

    def _send(self, to_email, subject, html) -> Dict:
        if self.disabled:
            return {"success": True, "message": "Email skipped (test mode)"}

        try:
            email_response = resend.Emails.send(
                {
                    "from": self.from_email,
                    "to": [to_email],
                    "subject": subject,
                    "html": html,
                }
            )
            return {
                "success": True,
                "message": "Email sent successfully",
                "email_id": email_response.get("id"),
            }

        except Exception as e:
            return {"success": False, "error": str(e)}


email_service = EmailService()
