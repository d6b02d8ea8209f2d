import asyncio
import time

import httpx

from contracts.errors import ProbeBlocked, ProbeNetworkError, ProbeTimeout

BLOCKED_STATUS_CODES = (403, 429)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Referer": "https://www.google.com/",
}


async def timed_get(client: httpx.AsyncClient, target: str, deadline: float, headers=None):
    """
    GET the target once, bounded by a wall-clock deadline.

    Returns:
        tuple: (response, latency in milliseconds)

    Raises:
        ProbeTimeout: The deadline expired.
        ProbeNetworkError: Transport failure, a malformed URL or exceeding the redirect cap.
    """
    start = time.perf_counter()
    try:
        resp = await asyncio.wait_for(
            client.get(
                target,
                headers=headers or BROWSER_HEADERS,
                follow_redirects=True,
                timeout=httpx.Timeout(deadline),
            ),
            timeout=deadline,
        )
    except (httpx.TimeoutException, asyncio.TimeoutError) as e:
        raise ProbeTimeout(target, f"no answer within {deadline:.1f}s") from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise ProbeNetworkError(target, repr(e)) from e
    latency_ms = round((time.perf_counter() - start) * 1000, 1)
    return resp, latency_ms


def raise_for_blocked(target: str, resp, latency_ms: float):
    if resp.status_code in BLOCKED_STATUS_CODES:
        raise ProbeBlocked(target, resp.status_code, latency_ms)
