"""OpenStreetMap feature fetching via Overpass API."""

import logging
from typing import Sequence

import httpx

from .fetch import FetchError, FetchStatusError, FetchTimeoutError, fetch_with_retry

logger = logging.getLogger(__name__)


def _overpass_elements(data) -> list[dict]:
    """Return the ``elements`` of an Overpass JSON answer.

    Overpass reports query timeouts and memory exhaustion with HTTP 200 and a
    ``remark`` containing "runtime error"; the elements are then partial
    or missing, so that answer is rejected like any other unusable body.
    """
    if not isinstance(data, dict):
        raise ValueError("response is not a JSON object")
    remark = data.get("remark")
    if isinstance(remark, str) and "runtime error" in remark.lower():
        raise ValueError(remark)
    elements = data.get("elements", [])
    if not isinstance(elements, list) or not all(isinstance(e, dict) for e in elements):
        raise ValueError("elements is not a list of objects")
    return elements


async def query_overpass(
    query: str,
    servers: Sequence[str],
    *,
    user_agent: str,
    timeout: float,
    max_retries: int = 1,
    backoff_step: float = 1.0,
) -> list[dict]:
    """Execute an Overpass API query with server fallback.

    Each server gets the full retry policy. A 4xx from one server means the
    query itself is bad, so the remaining servers are not tried. Raises the
    last error when every server fails.
    """
    last_error: FetchError = FetchError("No Overpass servers configured")
    async with httpx.AsyncClient(headers={"User-Agent": user_agent}) as client:
        for server in servers:
            try:
                response = await fetch_with_retry(
                    client, "POST", server,
                    data={"data": query},
                    timeout=timeout,
                    max_retries=max_retries,
                    backoff_step=backoff_step,
                )
                return _overpass_elements(response.json())
            except FetchTimeoutError as exc:
                logger.warning("Overpass server %s timed out: %s", server, exc)
                last_error = exc
            except FetchStatusError as exc:
                logger.warning("Overpass server %s returned HTTP %s", server, exc.status_code)
                if not exc.retryable:
                    raise
                last_error = exc
            except FetchError as exc:
                logger.warning("Overpass server %s failed: %s", server, exc)
                last_error = exc
            except ValueError as exc:
                logger.warning("Overpass server %s sent an unusable response: %s", server, exc)
                last_error = FetchError(f"Unusable response from {server}: {exc}")
    logger.warning("All Overpass servers failed for query")
    raise last_error


def element_position(element: dict):
    """Return (lat, lon) of a node, or the center of a way/relation."""
    lat = element.get("lat")
    lon = element.get("lon")
    if lat is None or lon is None:
        center = element.get("center") or {}
        lat = center.get("lat")
        lon = center.get("lon")
    if lat is None or lon is None:
        return None
    return float(lat), float(lon)
