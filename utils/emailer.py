import smtplib
from email.message import EmailMessage


class SmtpTransport:
    """
    Outbound notification transport. send() returns (ok, error) and never raises,
    so callers can capture each recipient's result individually.
    Holds its own settings so it can be used from worker threads without an app context.
    """

    def __init__(self, host=None, port=587, username=None, password=None,
                 from_email=None, use_tls=True, timeout=10):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email or username
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        return cls(
            host=config.get("SMTP_HOST"),
            port=config.get("SMTP_PORT", 587),
            username=config.get("SMTP_USERNAME"),
            password=config.get("SMTP_PASSWORD"),
            from_email=config.get("SMTP_FROM_EMAIL"),
            use_tls=config.get("SMTP_USE_TLS", True),
            timeout=config.get("SMTP_TIMEOUT_SECONDS", 10),
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.from_email)

    def send(self, to_email: str, subject: str, body: str, html: str = None):
        if not self.configured:
            return False, "Email not configured"

        msg = EmailMessage()
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(body)
        if html:
            msg.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
            return True, None
        except Exception as exc:
            return False, str(exc)
