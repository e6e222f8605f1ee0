"""Outbound HTTP client for integration nodes."""

from typing import Dict, Any, Optional
import requests
from shared.constants import DEFAULT_HTTP_TIMEOUT_MS


class HttpClient:
    """Thin wrapper over requests returning {status, statusText, headers, data, ok}"""

    def __init__(self, session: requests.Session = None):
        self.session = session or requests.Session()

    def request(self, method: str, url: str, headers: Optional[Dict[str, str]] = None,
                body: Any = None, params: Optional[Dict[str, Any]] = None,
                timeout_ms: int = DEFAULT_HTTP_TIMEOUT_MS) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"headers": headers or {}, "params": params, "timeout": timeout_ms / 1000}
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        elif body is not None:
            kwargs["data"] = body

        response = self.session.request(method.upper(), url, **kwargs)

        try:
            data = response.json()
        except ValueError:
            data = response.text

        return {
            "status": response.status_code,
            "statusText": response.reason,
            "headers": dict(response.headers),
            "data": data,
            "ok": response.ok,
        }
