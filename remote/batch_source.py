"""
Remote batch source for Algebrix.
Fetches the latest published problem batch over HTTP.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests

from config import Config

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Response from the remote source."""
    payload: Optional[Dict[str, Any]]
    url: str
    success: bool
    error: Optional[str] = None


class RemoteBatchSource:
    """Reads batch documents from the bucket that publishes them.

    The configured URL may serve a batch document directly, or a manifest
    of the form {"latestBatchUrl": "..."} that points at one. Relative
    pointers are resolved against the manifest URL.
    """

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize remote source.

        Args:
            url: Batch or manifest URL (defaults to Config.SYNC_URL)
            timeout: Request timeout in seconds (defaults to Config.SYNC_TIMEOUT)
        """
        self.url = url if url is not None else Config.SYNC_URL
        self.timeout = timeout or Config.SYNC_TIMEOUT

    def _get_json(self, url: str) -> Any:
        response = requests.get(url, timeout=self.timeout, headers={"Accept": "application/json"})
        response.raise_for_status()
        return response.json()

    def fetch_latest_batch(self) -> FetchResult:
        """Download the latest batch document.

        Never raises for transport problems; failures come back with
        success=False and an error message.

        Returns:
            FetchResult with the raw batch document as payload
        """
        if not self.url:
            return FetchResult(
                payload=None,
                url="",
                success=False,
                error="No sync URL configured (set ALGEBRIX_SYNC_URL)",
            )

        url = self.url
        try:
            document = self._get_json(url)

            if isinstance(document, dict) and "problems" not in document and document.get("latestBatchUrl"):
                url = urljoin(self.url, str(document["latestBatchUrl"]))
                logger.debug(f"Manifest points at {url}")
                document = self._get_json(url)

            if not isinstance(document, dict) or "problems" not in document:
                return FetchResult(
                    payload=None,
                    url=url,
                    success=False,
                    error=f"Response from {url} is not a batch document",
                )

            document.setdefault("sourceUrl", url)
            logger.info(f"Fetched batch {document.get('id')} from {url}")
            return FetchResult(payload=document, url=url, success=True)

        except requests.exceptions.ConnectionError:
            return FetchResult(
                payload=None,
                url=url,
                success=False,
                error=f"Cannot connect to {url}",
            )
        except requests.exceptions.Timeout:
            return FetchResult(
                payload=None,
                url=url,
                success=False,
                error=f"Request to {url} timed out after {self.timeout}s",
            )
        except requests.exceptions.HTTPError as e:
            return FetchResult(
                payload=None,
                url=url,
                success=False,
                error=f"HTTP error: {e}",
            )
        except ValueError as e:
            # Body was not JSON
            return FetchResult(
                payload=None,
                url=url,
                success=False,
                error=f"Invalid JSON from {url}: {e}",
            )
        except requests.exceptions.RequestException as e:
            return FetchResult(
                payload=None,
                url=url,
                success=False,
                error=f"Request failed: {e}",
            )

