from unittest.mock import MagicMock, patch

import pytest
import requests
from tenacity import wait_none

from fetchers import cima
from fetchers.cima import FeedError, fetch_all_shortages


def _page(page: int, size: int, total: int) -> dict:
    start = (page - 1) * size
    count = max(0, min(size, total - start))
    return {
        "totalFilas": total,
        "resultados": [{"cn": str(100000 + start + i), "nombre": f"MED {start + i}"} for i in range(count)],
    }


def _fake_pages(total: int, size: int, failing=()):
    calls = []

    def fetch(page, cache_buster):
        calls.append(page)
        if page in failing:
            raise requests.ConnectionError(f"page {page} down")
        return _page(page, size, total)

    return fetch, calls


def test_fetches_every_page_in_order(monkeypatch) -> None:
    monkeypatch.setattr(cima, "PAGE_SIZE", 10)
    fetch, calls = _fake_pages(total=95, size=10)
    progress = MagicMock()

    with patch("fetchers.cima._fetch_page", side_effect=fetch):
        result = fetch_all_shortages(progress)

    assert result.total_count == 95
    assert len(result.items) == 95
    assert [it["cn"] for it in result.items] == [str(100000 + i) for i in range(95)]
    assert sorted(calls) == list(range(1, 11))
    assert progress.call_args_list[0].args == (1, 10)
    assert progress.call_args_list[-1].args == (10, 10)


def test_failing_page_degrades_to_empty(monkeypatch) -> None:
    monkeypatch.setattr(cima, "PAGE_SIZE", 10)
    fetch, _ = _fake_pages(total=30, size=10, failing={2})

    with patch("fetchers.cima._fetch_page", side_effect=fetch):
        result = fetch_all_shortages()

    assert result.total_count == 30
    assert len(result.items) == 20


def test_empty_feed(monkeypatch) -> None:
    with patch("fetchers.cima._fetch_page", return_value={"totalFilas": 0, "resultados": []}):
        result = fetch_all_shortages()
    assert result.total_count == 0
    assert result.items == []


def test_first_page_failure_raises_feed_error() -> None:
    with patch("fetchers.cima._fetch_page", side_effect=requests.HTTPError("500")):
        with pytest.raises(FeedError):
            fetch_all_shortages()


def test_batches_never_exceed_concurrency(monkeypatch) -> None:
    monkeypatch.setattr(cima, "PAGE_SIZE", 1)
    monkeypatch.setattr(cima, "CONCURRENCY", 5)
    fetch, _ = _fake_pages(total=13, size=1)
    progress = MagicMock()

    with patch("fetchers.cima._fetch_page", side_effect=fetch):
        fetch_all_shortages(progress)

    # 1 first page, then batches of 5, 5 and 2.
    assert [c.args[0] for c in progress.call_args_list] == [1, 6, 11, 13]


def test_fetch_page_builds_request(monkeypatch) -> None:
    response = MagicMock()
    response.json.return_value = {"totalFilas": 1, "resultados": []}
    get = MagicMock(return_value=response)
    monkeypatch.setattr(cima.SESSION, "get", get)

    assert cima._fetch_page(3, 123) == {"totalFilas": 1, "resultados": []}
    params = get.call_args.kwargs["params"]
    assert params == {"pagina": 3, "tamanioPagina": cima.PAGE_SIZE, "t": 123}


def _response(payload=None, status=200):
    response = MagicMock()
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} Server Error")
    response.json.return_value = payload
    return response


def test_server_error_on_first_page_raises_after_retries(monkeypatch) -> None:
    monkeypatch.setattr(cima._fetch_page.retry, "wait", wait_none())
    get = MagicMock(return_value=_response(status=500))
    monkeypatch.setattr(cima.SESSION, "get", get)

    with pytest.raises(FeedError):
        fetch_all_shortages()
    assert get.call_count == 3


def test_server_error_on_later_page_drops_only_that_page(monkeypatch) -> None:
    monkeypatch.setattr(cima._fetch_page.retry, "wait", wait_none())
    monkeypatch.setattr(cima, "PAGE_SIZE", 10)

    def get(url, params=None, **kwargs):
        page = params["pagina"]
        if page == 2:
            return _response(status=500)
        return _response(_page(page, 10, 30))

    monkeypatch.setattr(cima.SESSION, "get", MagicMock(side_effect=get))

    result = fetch_all_shortages()

    assert result.total_count == 30
    assert [it["cn"] for it in result.items] == [str(100000 + i) for i in (*range(10), *range(20, 30))]
    assert cima._fetch_page_items(2, 0) == []
