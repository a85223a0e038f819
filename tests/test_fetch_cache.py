"""Tests for the cache-first fetcher and its durable store."""

from __future__ import annotations

import logging

import httpx
import pytest

from epubee_dl.errors import FetchError, StorageError
from epubee_dl.fetch.cache import CacheIndex, CacheStore, cache_path
from epubee_dl.fetch.fetcher import FetchCache, fetch_url


URL = "http://reader.epubee.com/books/mobile/5f/5f80cfe69440056dc623f051c2f76246/content.opf"


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_second_get_is_served_from_cache(tmp_path):
    calls = []

    def handler(request):
        calls.append(str(request.url))
        return httpx.Response(200, content=b"<package/>")

    store = CacheStore(tmp_path)
    with _client(handler) as client:
        fetcher = FetchCache(store, client)
        first = fetcher.get(URL)
        second = fetcher.get(URL)

    assert first == second == b"<package/>"
    assert calls == [URL]
    assert fetcher.stats.downloaded == 1
    assert fetcher.stats.cache_hits == 1


def test_cache_survives_a_new_store_instance(tmp_path):
    def online(request):
        return httpx.Response(200, content=b"chapter bytes")

    def offline(request):
        raise AssertionError("network must not be used")

    with _client(online) as client:
        FetchCache(CacheStore(tmp_path), client).get(URL)

    with _client(offline) as client:
        assert FetchCache(CacheStore(tmp_path), client).get(URL) == b"chapter bytes"


def test_cache_hit_is_logged(tmp_path, caplog):
    store = CacheStore(tmp_path)
    store.put(URL, b"x")
    logger = logging.getLogger("test_cache_hit")

    with _client(lambda request: httpx.Response(500)) as client:
        with caplog.at_level(logging.INFO, logger="test_cache_hit"):
            FetchCache(store, client, logger=logger).get(URL)

    assert any(getattr(record, "event", None) == "cache_hit" for record in caplog.records)


def test_timeouts_are_retried_without_prompting(tmp_path):
    attempts = 0

    def handler(request):
        nonlocal attempts
        attempts += 1
        if attempts < 4:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, content=b"finally")

    def acknowledge(url, error):
        raise AssertionError("timeouts must not prompt the operator")

    with _client(handler) as client:
        fetcher = FetchCache(CacheStore(tmp_path), client, acknowledge=acknowledge)
        assert fetcher.get(URL) == b"finally"

    assert attempts == 4
    assert fetcher.stats.timeouts == 3


def test_timeout_bound_raises_fetch_error(tmp_path):
    def handler(request):
        raise httpx.ConnectTimeout("slow", request=request)

    with _client(handler) as client:
        fetcher = FetchCache(CacheStore(tmp_path), client, timeout_retries=2)
        with pytest.raises(FetchError):
            fetcher.get(URL)

    assert fetcher.stats.timeouts == 3
    assert URL not in fetcher.store


def test_transport_error_waits_for_operator_then_retries(tmp_path):
    attempts = 0
    prompts = []

    def handler(request):
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, content=b"ok")

    def acknowledge(url, error):
        prompts.append((url, error))
        return True

    with _client(handler) as client:
        fetcher = FetchCache(CacheStore(tmp_path), client, acknowledge=acknowledge)
        assert fetcher.get(URL) == b"ok"

    assert len(prompts) == 1
    assert prompts[0][0] == URL
    assert "ConnectError" in prompts[0][1]


def test_declined_retry_raises_and_caches_nothing(tmp_path):
    with _client(lambda request: httpx.Response(503)) as client:
        fetcher = FetchCache(CacheStore(tmp_path), client, acknowledge=lambda url, error: False)
        with pytest.raises(FetchError) as excinfo:
            fetcher.get(URL)

    assert excinfo.value.url == URL
    assert "503" in excinfo.value.reason
    assert URL not in fetcher.store


def test_failure_without_operator_hook_raises(tmp_path):
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    with _client(handler) as client:
        with pytest.raises(FetchError):
            FetchCache(CacheStore(tmp_path), client).get(URL)


def test_fetch_url_classifies_outcomes():
    with _client(lambda request: httpx.Response(404)) as client:
        result = fetch_url(client, URL)
    assert result.content is None
    assert result.status_code == 404
    assert not result.timed_out

    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    with _client(timeout) as client:
        assert fetch_url(client, URL).timed_out


def test_store_is_write_once_and_ordered(tmp_path):
    store = CacheStore(tmp_path)
    assert store.put("http://a/1", b"first")
    assert store.put("http://a/2", b"second")
    assert not store.put("http://a/1", b"changed")

    assert store.get("http://a/1") == b"first"
    assert store.get("http://a/missing") is None
    assert list(store.keys()) == ["http://a/1", "http://a/2"]
    assert len(store) == 2
    assert store.path_for("http://a/1") == cache_path(tmp_path, "http://a/1")
    assert not list(tmp_path.glob(".tmp-*"))


def test_store_size_and_keys_agree(tmp_path):
    store = CacheStore(tmp_path)
    store.put("http://a/1", b"one")
    store.put("http://a/2", b"two")

    assert len(store) == len(list(store.keys())) == 2
    assert (tmp_path / "index.jsonl").is_file()

    reopened = CacheStore(tmp_path)
    assert list(reopened.keys()) == ["http://a/1", "http://a/2"]
    assert len(reopened) == 2


def test_failed_index_write_leaves_key_absent_until_retried(tmp_path, monkeypatch):
    store = CacheStore(tmp_path)
    original_append = CacheIndex.append

    def broken_append(self, payload):
        raise OSError("disk full")

    monkeypatch.setattr(CacheIndex, "append", broken_append)
    with pytest.raises(StorageError):
        store.put("http://a/1", b"one")

    assert "http://a/1" not in store
    assert store.get("http://a/1") is None
    assert list(store.keys()) == []
    assert not list(tmp_path.glob(".tmp-*"))

    monkeypatch.setattr(CacheIndex, "append", original_append)
    assert store.put("http://a/1", b"one")
    assert list(store.keys()) == ["http://a/1"]
    assert store.get("http://a/1") == b"one"


def test_store_on_a_regular_file_raises_storage_error(tmp_path):
    not_a_dir = tmp_path / "cache"
    not_a_dir.write_bytes(b"")

    with pytest.raises(StorageError):
        CacheStore(not_a_dir)


def test_unwritable_store_surfaces_storage_error_from_get(tmp_path, monkeypatch):
    def broken_append(self, payload):
        raise OSError("read-only file system")

    monkeypatch.setattr(CacheIndex, "append", broken_append)
    store = CacheStore(tmp_path)

    with _client(lambda request: httpx.Response(200, content=b"body")) as client:
        fetcher = FetchCache(store, client)
        with pytest.raises(StorageError) as excinfo:
            fetcher.get(URL)

    assert URL in str(excinfo.value)
    assert fetcher.stats.downloaded == 0
    assert URL not in store
