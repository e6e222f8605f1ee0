"""Best-effort failure notifications for periodic jobs."""

import logging
import os
import requests
from shared.logging_config import get_correlation_id
from shared.utils import isoformat


class FailureNotifier:

    def __init__(self, webhook_url: str = None, session: requests.Session = None, timeout_seconds: float = 5):
        self.webhook_url = webhook_url if webhook_url is not None else os.getenv("SWEEP_ALERT_WEBHOOK_URL", "")
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds

    def notify(self, job: str, error: BaseException) -> bool:
        """Reports a job failure; never raises"""
        logging.critical("Periodic job failed", extra={"job": job, "error": str(error)})

        if not self.webhook_url:
            return False

        payload = {
            "job": job,
            "error": str(error),
            "errorType": type(error).__name__,
            "correlationId": get_correlation_id(),
            "timestamp": isoformat(),
        }
        try:
            response = self.session.post(self.webhook_url, json=payload, timeout=self.timeout_seconds)
            response.raise_for_status()
            return True
        except requests.exceptions.RequestException as e:
            logging.error("Failure notification could not be delivered", extra={"job": job, "error": str(e)})
            return False
