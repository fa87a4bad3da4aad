"""
Base API client class for Readarr Request.
"""

from typing import Optional, Dict, Any
from dataclasses import dataclass
import requests

CONNECTION_REFUSED_MESSAGE = "Unable to reach Readarr. Check the base URL and network."
API_KEY_REJECTED_MESSAGE = "Readarr rejected the API key."


@dataclass
class APIError(Exception):
    """Custom exception for API errors."""
    message: str
    status_code: Optional[int] = None
    response_data: Optional[Any] = None
    connection_refused: bool = False

    def __str__(self) -> str:
        if self.status_code:
            return f"API Error {self.status_code}: {self.message}"
        return f"API Error: {self.message}"

    @property
    def user_message(self) -> str:
        """Message suitable for showing to the person who triggered the call."""
        if self.connection_refused:
            return CONNECTION_REFUSED_MESSAGE
        if self.status_code in (401, 403):
            return API_KEY_REJECTED_MESSAGE
        return self.message or "Readarr error."


def extract_error_message(error_data: Any, fallback: str) -> str:
    """
    Pull a human readable message out of an error response body.

    Readarr answers with either an object carrying ``message``/``error``
    or, for validation failures, a list of objects with ``errorMessage``.
    """
    if isinstance(error_data, dict):
        return error_data.get("message") or error_data.get("error") or fallback
    if isinstance(error_data, list):
        messages = [
            item.get("errorMessage")
            for item in error_data
            if isinstance(item, dict) and item.get("errorMessage")
        ]
        if messages:
            return "; ".join(messages)
    return fallback


def _is_connection_refused(error: requests.exceptions.ConnectionError) -> bool:
    text = str(error).lower()
    return "refused" in text or "errno 111" in text or "econnrefused" in text


class BaseClient:
    """
    Base class for API clients with common functionality.

    Every call is a single attempt; retrying is left to the caller.
    """

    def __init__(self, base_url: str, timeout: int = 15):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _build_url(self, endpoint: str) -> str:
        """Build full URL from endpoint."""
        return f"{self.base_url}{endpoint}"

    def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Any:
        """
        Make an HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint
            **kwargs: Additional arguments for requests

        Returns:
            Response JSON data (object or array), or None for empty bodies

        Raises:
            APIError: If the request fails
        """
        url = self._build_url(endpoint)

        # Set default timeout
        kwargs.setdefault("timeout", self.timeout)

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.ConnectionError as e:
            raise APIError(
                f"Connection error: {str(e)}",
                connection_refused=_is_connection_refused(e),
            )
        except requests.exceptions.Timeout as e:
            raise APIError(f"Request timeout: {str(e)}")
        except requests.exceptions.RequestException as e:
            raise APIError(f"Request failed: {str(e)}")

        # Check for HTTP errors
        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {"error": response.text}

            raise APIError(
                message=extract_error_message(error_data, response.text or response.reason or ""),
                status_code=response.status_code,
                response_data=error_data,
            )

        if not response.content:
            return None

        # Return JSON if possible
        try:
            return response.json()
        except ValueError:
            return {"data": response.text}

    def get(self, endpoint: str, **kwargs) -> Any:
        """Make a GET request."""
        return self._request("GET", endpoint, **kwargs)

    def post(self, endpoint: str, **kwargs) -> Any:
        """Make a POST request."""
        return self._request("POST", endpoint, **kwargs)

    def put(self, endpoint: str, **kwargs) -> Any:
        """Make a PUT request."""
        return self._request("PUT", endpoint, **kwargs)

    def close(self) -> None:
        """Close the session."""
        self.session.close()
