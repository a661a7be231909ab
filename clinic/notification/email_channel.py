"""
邮件通知渠道 - SMTP 发送邮件
发送失败只记录日志并返回 False，不向调用方抛出
"""
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from clinic_core.notification import INotificationChannel, Notification

logger = logging.getLogger(__name__)


class EmailChannel(INotificationChannel):
    """SMTP 邮件渠道，每封邮件建立一次连接"""

    channel_type = "email"

    def __init__(
        self,
        smtp_host: str = "localhost",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        sender_email: str = "",
        sender_name: str = "Hire a Clinic",
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.sender_email = sender_email or smtp_user
        self.sender_name = sender_name
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "EmailChannel":
        return cls(
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER,
            smtp_password=settings.SMTP_PASSWORD,
            sender_email=settings.EMAIL_FROM,
            sender_name=settings.APP_NAME,
            use_tls=settings.SMTP_USE_TLS,
        )

    def build_message(self, notification: Notification) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.sender_name, self.sender_email))
        message["To"] = notification.recipient
        message["Subject"] = notification.subject
        message.set_content(notification.body, subtype=notification.content_type)
        return message

    def send(self, notification: Notification) -> bool:
        message = self.build_message(notification)
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.smtp_user:
                    smtp.login(self.smtp_user, self.smtp_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {notification.recipient} failed: {e}", exc_info=True)
            return False

        logger.info(f"Email '{notification.subject}' sent to {notification.recipient}")
        return True
