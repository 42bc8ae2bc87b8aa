import logging
from urllib.parse import urlencode

import sendgrid
from sendgrid.helpers.mail import Mail

import settings
from domain.user import SignUpUser

logger = logging.getLogger('uvicorn.error')


def signup_link(challenge: str) -> str:
    return f"{settings.SITE_URL}{settings.SIGN_UP_VALIDATE_PATH}?{urlencode({'challenge': challenge})}"


def send_signup_email(user: SignUpUser, challenge: str) -> int:
    api_key = settings.get_sendgrid_api_key()
    if not api_key:
        raise RuntimeError("SendGrid API key is not configured")
    name = " "+user.given_name if user.given_name is not None else ""
    message = Mail(
        from_email=settings.EMAIL_FROM,
        to_emails=user.email,
        subject='Complete your grams sign up',
        html_content=f'<strong>Hello{name},</strong><p>To complete your grams signup, please click <a href=\"{signup_link(challenge)}\"> here</a> </p>'
    )
    sg = sendgrid.SendGridAPIClient(api_key)
    response = sg.send(message)
    logger.info(f"Sign up email for {user.username} sent, status code {response.status_code}")
    return response.status_code
