"""
Notification channel: e-mails an operator report for urgent anomalies.
"""

import smtplib
from email.message import EmailMessage

import structlog

from src.analyzer.models import AnomalyRecord

from .models import NotificationConfig

logger = structlog.get_logger(__name__)


class NotificationChannel:
    """Sends operator alerts over SMTP"""

    def __init__(self, config: NotificationConfig, timeout_seconds: float = 30.0):
        self.config = config
        self.timeout_seconds = timeout_seconds

    def notify(self, anomaly: AnomalyRecord) -> bool:
        """Compose and send the detailed report for an anomaly"""
        return self.send(anomaly.severity.value, anomaly.anomaly_type, anomaly.to_report())

    def send(self, severity: str, anomaly_type: str, report: str) -> bool:
        """Deliver a report

        Returns:
            True if the SMTP server accepted the message
        """
        if not self.config.enabled:
            logger.info("Notifications are disabled", anomaly_type=anomaly_type)
            return False

        message = EmailMessage()
        message["Subject"] = f"SECURITY ALERT: {anomaly_type} - {severity}"
        message["From"] = self.config.username or f"pipeline@{self.config.smtp_host}"
        message["To"] = self.config.recipient
        message.set_content(report)

        try:
            with smtplib.SMTP(
                self.config.smtp_host, self.config.smtp_port, timeout=self.timeout_seconds
            ) as smtp:
                if self.config.use_tls:
                    smtp.starttls()
                if self.config.username:
                    smtp.login(self.config.username, self.config.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "Failed to send notification",
                anomaly_type=anomaly_type,
                smtp_host=self.config.smtp_host,
                error=str(e),
            )
            return False

        logger.info(
            "Notification sent",
            anomaly_type=anomaly_type,
            severity=severity,
            recipient=self.config.recipient,
        )
        return True
