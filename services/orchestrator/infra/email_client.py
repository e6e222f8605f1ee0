"""Email delivery for email nodes."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Any


class EmailSender(ABC):

    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> Dict[str, Any]:
        ...


class LogEmailSender(EmailSender):
    """Simulated delivery: records the message in the log and acknowledges it"""

    def send(self, to: str, subject: str, body: str) -> Dict[str, Any]:
        logging.info("Email sent (simulated)", extra={"to": to, "subject": subject, "body_length": len(body)})
        return {"success": True, "message": "Email sent (simulated)"}
