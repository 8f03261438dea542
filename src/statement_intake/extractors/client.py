"""
Extraction service API client.
"""

import logging
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..schemas.statement import ExtractedStatement
from .base import BaseExtractor, ExtractionOutcome

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """Base exception for extraction client errors."""
    pass


class ExtractionAPIError(ExtractionError):
    """API returned an error response."""
    def __init__(self, status_code: int, message: str, response_body: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"Extraction API error {status_code}: {message}")


class ExtractionConnectionError(ExtractionError):
    """Failed to connect to the extraction service."""
    pass


def _first(data: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


class ExtractionClient(BaseExtractor):
    """
    Client for the statement extraction service.

    Features:
    - Multipart upload of the statement with month/year/password
    - "Password required" signalling
    - Automatic retry with backoff for transient HTTP failures
    """

    DEFAULT_TIMEOUT = 120
    EXTRACT_ENDPOINT = "/api/extract"

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize extraction client.

        Args:
            base_url: Extraction service URL (e.g., "http://localhost:8500")
            token: API token (optional)
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
            backoff_factor: Backoff factor for retries
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET", "POST"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @property
    def name(self) -> str:
        return "extraction_service"

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """Make an API request with error handling."""
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.request(method=method, url=url, timeout=self.timeout, **kwargs)
        except requests.exceptions.ConnectionError as e:
            raise ExtractionConnectionError(
                f"Failed to connect to extraction service at {self.base_url}: {e}"
            ) from e
        except requests.exceptions.Timeout as e:
            raise ExtractionConnectionError(f"Request to extraction service timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ExtractionError(f"Request failed: {e}") from e

        if not response.ok:
            raise ExtractionAPIError(
                status_code=response.status_code,
                message=response.reason,
                response_body=response.text,
            )

        return response

    def test_connection(self) -> bool:
        """Test connection to the extraction service."""
        try:
            self._request("GET", "/api/health")
            return True
        except ExtractionError:
            return False

    def extract(
        self,
        blob: bytes,
        filename: str,
        month: int,
        year: int,
        password: Optional[str] = None,
    ) -> ExtractionOutcome:
        """
        Send a statement to the extraction service.

        Returns:
            ExtractionOutcome (success=False with requires_password set when
            the service cannot open the document)

        Raises:
            ExtractionAPIError: Non-2xx response
            ExtractionConnectionError: Service unreachable or timed out
        """
        data = {"month": str(month), "year": str(year)}
        if password:
            data["password"] = password

        logger.debug("Extracting %s for %02d/%d", filename, month, year)
        response = self._request(
            "POST",
            self.EXTRACT_ENDPOINT,
            files={"file": (filename, blob, "application/pdf")},
            data=data,
        )

        try:
            body = response.json()
        except ValueError as e:
            raise ExtractionError(f"Extraction service returned invalid JSON: {e}") from e
        if not isinstance(body, dict):
            raise ExtractionError("Extraction service returned an unexpected payload")

        return self.parse_response(body)

    @staticmethod
    def parse_response(body: dict) -> ExtractionOutcome:
        """Build an ExtractionOutcome from the service's JSON body."""
        requires_password = bool(_first(body, "requires_password", "requiresPassword", default=False))
        success = bool(body.get("success", False)) and not requires_password
        raw_data = _first(body, "extracted_data", "extractedData")

        extracted = None
        if success and isinstance(raw_data, dict):
            extracted = ExtractedStatement.from_dict(raw_data)

        return ExtractionOutcome(
            success=success,
            extracted_data=extracted,
            requires_password=requires_password,
            message=str(body.get("message") or body.get("error") or ""),
            raw=body,
        )
