# fetchers/cima.py
import math
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests
from tenacity import RetryError, retry, stop_after_attempt, wait_exponential_jitter

from cimawatch.logger import get_logger

logger = get_logger(__name__)

CIMA_API_URL = os.getenv("CIMA_API_URL", "https://cima.aemps.es/cima/rest/psuministro")
PAGE_SIZE = int(os.getenv("CIMA_PAGE_SIZE", "200"))
CONCURRENCY = max(1, int(os.getenv("CIMA_CONCURRENCY", "5")))
REQUEST_TIMEOUT = int(os.getenv("CIMA_TIMEOUT", "30"))
USER_AGENT = os.getenv("CIMA_USER_AGENT", "cima-watch/1.0")

SESSION = requests.Session()
SESSION.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})

ProgressCallback = Callable[[int, int], None]


class FeedError(Exception):
    """The shortage feed could not be read at all."""


@dataclass
class FeedResult:
    # Pages that failed are counted as empty, so len(items) may be < total_count.
    total_count: int = 0
    items: List[Dict[str, Any]] = field(default_factory=list)


@retry(wait=wait_exponential_jitter(initial=1, max=10), stop=stop_after_attempt(3))
def _fetch_page(page: int, cache_buster: int) -> Dict[str, Any]:
    r = SESSION.get(
        CIMA_API_URL,
        params={"pagina": page, "tamanioPagina": PAGE_SIZE, "t": cache_buster},
        timeout=REQUEST_TIMEOUT,
    )
    r.raise_for_status()
    data = r.json()
    if not isinstance(data, dict):
        raise ValueError(f"Unexpected payload type {type(data).__name__}")
    return data


def _page_items(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = data.get("resultados") or []
    return [it for it in items if isinstance(it, dict)]


def _fetch_page_items(page: int, cache_buster: int) -> List[Dict[str, Any]]:
    """A failing page degrades to an empty page."""
    try:
        return _page_items(_fetch_page(page, cache_buster))
    except RetryError as e:
        logger.warning("CIMA page %d failed after retries: %s", page, e.last_attempt.exception())
    except (requests.RequestException, ValueError) as e:
        logger.warning("CIMA page %d failed: %s", page, e)
    return []


def fetch_all_shortages(progress: Optional[ProgressCallback] = None) -> FeedResult:
    """
    Fetch every shortage page from CIMA. The first page gives the total;
    the rest are fetched in batches of CONCURRENCY pages, each batch
    finishing before the next starts.
    """
    cache_buster = int(time.time() * 1000)
    logger.info("Fetching shortages from %s", CIMA_API_URL)

    try:
        first = _fetch_page(1, cache_buster)
    except RetryError as e:
        raise FeedError(f"CIMA first page failed: {e.last_attempt.exception()}") from e
    except (requests.RequestException, ValueError) as e:
        raise FeedError(f"CIMA first page failed: {e}") from e

    try:
        total = int(first.get("totalFilas") or 0)
    except (TypeError, ValueError):
        total = 0
    items = _page_items(first)

    if total == 0:
        logger.info("CIMA reports no shortages.")
        return FeedResult(total_count=0, items=[])

    total_pages = math.ceil(total / PAGE_SIZE)
    logger.info("CIMA total: %d items across %d pages", total, total_pages)
    if progress:
        progress(1, total_pages)

    remaining = list(range(2, total_pages + 1))
    if remaining:
        with ThreadPoolExecutor(max_workers=CONCURRENCY) as pool:
            for i in range(0, len(remaining), CONCURRENCY):
                batch = remaining[i:i + CONCURRENCY]
                # map() keeps page order and waits for the whole batch.
                for page_items in pool.map(lambda p: _fetch_page_items(p, cache_buster), batch):
                    items.extend(page_items)
                if progress:
                    progress(1 + i + len(batch), total_pages)

    if len(items) < total:
        logger.warning("Fetched %d of %d shortages; some pages failed.", len(items), total)
    else:
        logger.info("Fetched %d shortages", len(items))

    return FeedResult(total_count=total, items=items)
