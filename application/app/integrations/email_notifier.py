import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from app.core.exceptions import DeliveryFailed
from app.logging.utils import get_app_logger
from app.config.settings import AuthConfigs

logger = get_app_logger(__name__)
configs = AuthConfigs()

OTP_EMAIL_SUBJECT = "Your OTP Code"


def render_otp_email(code: str, valid_minutes: int) -> str:
    """HTML body for the OTP email."""
    return f"""
        <h2>Welcome to ChatAB 🎉</h2>
        <p>Your OTP:</p>
        <h1>{code}</h1>
        <p>Valid for {valid_minutes} minutes.</p>
    """


class SMTPEmailNotifier:
    """
    SMTP integration for sending HTML emails.
    Simple wrapper around smtplib with STARTTLS.
    """

    def __init__(
        self,
        host: str = configs.SMTP_HOST,
        port: int = configs.SMTP_PORT,
        username: str = configs.EMAIL_USER,
        password: str = configs.EMAIL_PASS,
        from_name: str = configs.EMAIL_FROM_NAME,
        use_tls: bool = configs.SMTP_USE_TLS,
        timeout: int = configs.SMTP_TIMEOUT,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_name = from_name
        self.use_tls = use_tls
        self.timeout = timeout

        if not self.username or not self.password:
            logger.warning("SMTP credentials not configured")

    def build_message(self, to: str, subject: str, html: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = formataddr((self.from_name, self.username))
        message["To"] = to
        message["Subject"] = subject
        message.attach(MIMEText(html, "html", "utf-8"))
        return message

    def send(self, to: str, subject: str, html: str) -> None:
        """
        Send an HTML email.

        Raises:
            DeliveryFailed: if the SMTP conversation fails for any reason
        """
        message = self.build_message(to, subject, html)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.username, [to], message.as_string())
            logger.info(f"email_sent | to={to} subject={subject}")
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"email_send_failed | to={to} error={e}", exc_info=True)
            raise DeliveryFailed() from e
