"""
Shared HTTP helper for upstream service clients.
"""
import logging
import threading
from typing import Any, Dict, Optional

import requests

from dashboard.errors import SourceUnavailable

logger = logging.getLogger("services.http")

# Limit concurrent upstream requests across all parallel fan-outs
_upstream_semaphore = threading.Semaphore(10)


def get_json(
    service: str,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 10,
) -> Any:
    """
    GET a JSON document from an upstream service.

    Raises:
        SourceUnavailable: On connection errors, timeouts, HTTP errors or bad JSON
    """
    try:
        with _upstream_semaphore:
            response = requests.get(url, params=params, headers=headers, timeout=timeout)
            response.raise_for_status()
            return response.json()
    except requests.Timeout as e:
        logger.warning(f"{service} request timed out after {timeout}s: {url}")
        raise SourceUnavailable(service, f"timed out after {timeout}s") from e
    except requests.ConnectionError as e:
        logger.warning(f"{service} is not reachable: {url}")
        raise SourceUnavailable(service, f"connection failed: {e}") from e
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else "?"
        logger.warning(f"{service} HTTP error {status}: {url}")
        raise SourceUnavailable(service, f"HTTP {status}") from e
    except requests.RequestException as e:
        raise SourceUnavailable(service, str(e)) from e
    except ValueError as e:
        raise SourceUnavailable(service, f"invalid JSON response: {e}") from e


def redact(secret: Optional[str]) -> str:
    """Show only the first four characters of an API key in logs."""
    if not secret:
        return "<unset>"
    return f"{secret[:4]}..."
