import json
from unittest.mock import MagicMock

import pytest

from pkg_multiauth.adapters.cache.file_backend import FileCacheBackend
from pkg_multiauth.adapters.cache.memory_backend import MemoryCacheBackend
from pkg_multiauth.adapters.cache.redis_backend import RedisCacheBackend
from pkg_multiauth.application.persistent_cache import PersistentKeyCache
from pkg_multiauth.domain.entities import StoredJWKS
from pkg_multiauth.domain.value_objects import issuer_cache_key


JWKS = {
    "keys": [
        {"kty": "RSA", "kid": "test-key-1", "use": "sig", "alg": "RS256", "n": "test-modulus", "e": "AQAB"},
    ],
}
KEY = issuer_cache_key("customer")


# --- FileCacheBackend ---------------------------------------------------


def test_file_backend_survives_restart(tmp_path):
    FileCacheBackend(tmp_path).write(KEY, StoredJWKS(jwks=JWKS, fetched_at=1700000000))

    # a fresh instance plays the part of a new worker process
    stored = FileCacheBackend(tmp_path).try_read(KEY)
    assert stored is not None
    assert stored.jwks == JWKS
    assert stored.fetched_at == 1700000000


def test_file_backend_document_format(tmp_path):
    backend = FileCacheBackend(tmp_path)
    backend.write(KEY, StoredJWKS(jwks=JWKS, fetched_at=1700000000))

    path = tmp_path / f"{KEY}.json"
    assert backend.path_for(KEY) == path
    assert json.loads(path.read_text()) == {"jwks": JWKS, "time": 1700000000}


def test_file_backend_atomic_write_leaves_no_temp_files(tmp_path):
    backend = FileCacheBackend(tmp_path)
    backend.write(KEY, StoredJWKS(jwks=JWKS, fetched_at=1))
    backend.write(KEY, StoredJWKS(jwks=JWKS, fetched_at=2))

    assert list(tmp_path.glob("*.tmp")) == []
    assert backend.try_read(KEY).fetched_at == 2


def test_file_backend_missing_entry(tmp_path):
    assert FileCacheBackend(tmp_path).try_read(issuer_cache_key("nonexistent")) is None


def test_file_backend_creates_cache_dir(tmp_path):
    backend = FileCacheBackend(tmp_path / "nested" / "cache")
    backend.write(KEY, StoredJWKS(jwks=JWKS, fetched_at=1))
    assert backend.try_read(KEY) is not None


def test_file_backend_defaults_to_temp_dir():
    import tempfile

    assert str(FileCacheBackend().cache_dir) == tempfile.gettempdir()


def test_file_backend_raises_on_corrupt_file(tmp_path):
    backend = FileCacheBackend(tmp_path)
    backend.path_for(KEY).write_text("{not json")
    with pytest.raises(ValueError):
        backend.try_read(KEY)


# --- RedisCacheBackend --------------------------------------------------


def test_redis_backend_write_sets_ttl():
    client = MagicMock()
    RedisCacheBackend(client).write(KEY, StoredJWKS(jwks=JWKS, fetched_at=5))

    client.set.assert_called_once()
    args, kwargs = client.set.call_args
    assert args[0] == KEY
    assert json.loads(args[1]) == {"jwks": JWKS, "time": 5}
    assert kwargs["ex"] == 86400


def test_redis_backend_read():
    client = MagicMock()
    client.get.return_value = json.dumps({"jwks": JWKS, "time": 5}).encode("utf-8")

    stored = RedisCacheBackend(client, ttl=60).try_read(KEY)
    assert stored == StoredJWKS(jwks=JWKS, fetched_at=5.0)
    client.get.assert_called_once_with(KEY)


def test_redis_backend_miss():
    client = MagicMock()
    client.get.return_value = None
    assert RedisCacheBackend(client).try_read(KEY) is None


# --- PersistentKeyCache -------------------------------------------------


def test_persistent_cache_write_then_read(tmp_path):
    cache = PersistentKeyCache(backends=[FileCacheBackend(tmp_path)], clock=lambda: 1234.0)
    stored = cache.write(KEY, JWKS)
    assert stored.fetched_at == 1234.0

    assert cache.read(KEY) == StoredJWKS(jwks=JWKS, fetched_at=1234.0)


def test_persistent_cache_explicit_fetch_time():
    cache = PersistentKeyCache(backends=[MemoryCacheBackend()], clock=lambda: 1234.0)
    cache.write(KEY, JWKS, fetched_at=99.0)
    assert cache.read(KEY).fetched_at == 99.0


def test_persistent_cache_corrupt_file_is_a_miss(tmp_path, caplog):
    backend = FileCacheBackend(tmp_path)
    backend.path_for(KEY).write_text("garbage")

    with caplog.at_level("WARNING"):
        assert PersistentKeyCache(backends=[backend]).read(KEY) is None
    assert "treating as miss" in caplog.text


def test_persistent_cache_read_backfills_missing_backend(tmp_path):
    fast = MemoryCacheBackend()
    durable = FileCacheBackend(tmp_path)
    durable.write(KEY, StoredJWKS(jwks=JWKS, fetched_at=42.0))

    cache = PersistentKeyCache(backends=[fast, durable])
    assert cache.read(KEY).fetched_at == 42.0

    # fast store now holds the same document with the original fetch time
    assert fast.try_read(KEY) == StoredJWKS(jwks=JWKS, fetched_at=42.0)


def test_persistent_cache_read_returns_newest_copy(tmp_path):
    fast = MemoryCacheBackend()
    fast.write(KEY, StoredJWKS(jwks={"keys": []}, fetched_at=1.0))
    durable = FileCacheBackend(tmp_path)
    durable.write(KEY, StoredJWKS(jwks=JWKS, fetched_at=1000.0))

    stored = PersistentKeyCache(backends=[fast, durable]).read(KEY)

    assert stored == StoredJWKS(jwks=JWKS, fetched_at=1000.0)
    # outdated copy in the fast store is replaced, the newer one left alone
    assert fast.try_read(KEY) == stored
    assert durable.try_read(KEY).fetched_at == 1000.0


def test_persistent_cache_tie_keeps_first_backend_copy():
    first, second = MemoryCacheBackend(), MemoryCacheBackend()
    first.write(KEY, StoredJWKS(jwks=JWKS, fetched_at=5.0))
    second.write(KEY, StoredJWKS(jwks={"keys": []}, fetched_at=5.0))

    assert PersistentKeyCache(backends=[first, second]).read(KEY).jwks == JWKS
    assert second.try_read(KEY).jwks == {"keys": []}


def test_persistent_cache_writes_every_backend(tmp_path):
    fast = MemoryCacheBackend()
    durable = FileCacheBackend(tmp_path)
    PersistentKeyCache(backends=[fast, durable], clock=lambda: 7.0).write(KEY, JWKS)

    assert fast.try_read(KEY).fetched_at == 7.0
    assert durable.try_read(KEY).fetched_at == 7.0


def test_persistent_cache_swallows_backend_errors(caplog):
    broken = MagicMock()
    broken.name = "broken"
    broken.try_read.side_effect = OSError("disk gone")
    broken.write.side_effect = OSError("disk gone")
    healthy = MemoryCacheBackend()

    cache = PersistentKeyCache(backends=[broken, healthy], clock=lambda: 1.0)
    with caplog.at_level("WARNING"):
        cache.write(KEY, JWKS)
        stored = cache.read(KEY)

    assert stored == StoredJWKS(jwks=JWKS, fetched_at=1.0)
    assert "write failed" in caplog.text
    assert "read failed" in caplog.text


def test_persistent_cache_unwritable_dir_does_not_raise(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    cache = PersistentKeyCache(backends=[FileCacheBackend(blocker)])

    cache.write(KEY, JWKS)
    assert cache.read(KEY) is None


def test_persistent_cache_without_backends():
    cache = PersistentKeyCache()
    cache.write(KEY, JWKS)
    assert cache.read(KEY) is None
