"""
MJML Email Templates
All email templates using MJML for responsive, cross-client compatibility
"""

from html import escape
from typing import Optional

from ..config import BRAND_NAME, FRONTEND_URL

# Brand colors - Navy/Gold color scheme
THEME = {
    "primary": "#1e3a5f",
    "primary_dark": "#132842",
    "accent": "#c9a227",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['primary']}" padding="28px 20px">
          <mj-column>
            <mj-text align="center" font-size="22px" font-weight="700" color="#ffffff">
              {BRAND_NAME}
            </mj-text>
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="12px" color="{THEME['text_muted']}">
              {BRAND_NAME} · Dallas, TX
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def email_verification_template(user_name: str, code: str, ttl_minutes: int) -> str:
    """Account verification code MJML template"""
    content = f"""
            <mj-text color="{THEME['text_muted']}" padding="0 0 24px 0">
              Hi {escape(user_name)}, use this code to verify your account. The same code also
              confirms your phone number.
            </mj-text>
            <mj-text align="center" font-size="36px" font-weight="700" letter-spacing="8px"
                     color="{THEME['primary']}" padding="8px 0 24px 0">
              {code}
            </mj-text>
            <mj-text font-size="14px" color="{THEME['text_muted']}">
              This code expires in {ttl_minutes} minutes. If you did not create an account, you
              can ignore this email.
            </mj-text>
    """
    return get_base_template(
        title="Verify Your Account",
        preview_text=f"Your verification code is {code}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/verify",
        cta_label="Open Verification Page",
    )
