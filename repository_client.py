"""HTTP transport for reading content from a live Fedora repository."""

import logging
import time
from typing import Any, Dict, Optional

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger('fedora_export.client')


class RepositoryClient:
    """Thin requests session wrapper with timeouts, TLS settings and transport-level retries."""

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_ssl: bool = True,
        timeout: float = 30,
        max_retries: int = 0,
        retry_backoff_factor: float = 0.5
    ):
        """
        Initialize the repository client.

        Args:
            username: Username for basic auth (optional)
            password: Password for basic auth (optional)
            verify_ssl: Whether to verify SSL certificates
            timeout: HTTP request timeout in seconds
            max_retries: Transport retry attempts for transient errors (0 disables)
            retry_backoff_factor: Exponential backoff factor between transport retries
        """
        self.timeout = timeout
        self.max_retries = max_retries

        self.session = requests.Session()

        if username:
            if password is None:
                raise ValueError("Basic auth requires username and password")
            self.session.auth = (username, password)
            logger.info(f"Initialized repository client with Basic auth for user {username}")

        self.session.verify = verify_ssl
        if not verify_ssl:
            logger.warning("SSL verification disabled - this is insecure!")
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
            raise_on_status=False
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        logger.debug(f"Client configured with timeout={timeout}s, max_retries={max_retries}, "
                     f"backoff_factor={retry_backoff_factor}")

    def open_stream(self, url: str) -> requests.Response:
        """
        Issue a streaming GET request and return the successful response.

        The caller owns the response and must close it.

        Args:
            url: Absolute URL to read

        Returns:
            Response with an unread body

        Raises:
            requests.exceptions.HTTPError: For non-success status codes
            requests.exceptions.RequestException: For connectivity errors
        """
        start_time = time.time()
        logger.debug(f"GET {url}")

        try:
            response = self.session.get(url, timeout=self.timeout, stream=True)
        except requests.exceptions.Timeout:
            logger.error(f"Request timeout after {self.timeout}s: GET {url}")
            raise
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: GET {url} - {str(e)}")
            raise

        elapsed = time.time() - start_time
        logger.debug(f"Response: {response.status_code} {url} ({elapsed:.3f}s)")

        if response.status_code != 200:
            logger.error(f"HTTP Error {response.status_code}: GET {url}")
            try:
                response.raise_for_status()
                raise requests.exceptions.HTTPError(
                    f"Unexpected status {response.status_code} for url: {url}",
                    response=response
                )
            finally:
                response.close()

        return response

    def close(self) -> None:
        self.session.close()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'RepositoryClient':
        """
        Initialize a repository client from the configuration dictionary.

        Args:
            config: Configuration dictionary with resolver and advanced settings

        Returns:
            RepositoryClient instance
        """
        resolver_config = config.get('resolver', {})
        advanced_config = config.get('advanced', {})

        return cls(
            username=resolver_config.get('username'),
            password=resolver_config.get('password'),
            verify_ssl=advanced_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', 30),
            max_retries=advanced_config.get('max_retries', 0),
            retry_backoff_factor=advanced_config.get('retry_backoff_factor', 0.5)
        )


__all__ = ['RepositoryClient']
