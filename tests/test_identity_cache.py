from chromeservice.identity_cache import CacheEntry, UserIdentityCache
from chromeservice.models import UserIdentity


def test_cache_set_get_delete_expire():
    cache = UserIdentityCache()

    test_identity = UserIdentity(account_id="test")
    cache.set("test", test_identity)
    identity = cache.get("test")
    assert identity is not None
    assert identity.account_id == "test"
    assert identity == test_identity

    cache.delete("test")
    assert cache.get("test") is None

    expired_identity = UserIdentity(account_id="expired")
    cache.set("expired", expired_identity)
    identity = cache.get("expired")
    assert identity is not None
    assert identity.account_id == "expired"
    assert identity == expired_identity

    cache.identities["expired"] = CacheEntry(
        expire_at=cache.identities["expired"].expire_at - 120,
        identity=expired_identity,
    )
    assert cache.get("expired") is None
    assert "expired" not in cache.identities


def test_missing_entry():
    assert UserIdentityCache().get("nobody") is None


def test_delete_missing_is_harmless():
    cache = UserIdentityCache()
    cache.delete("nobody")
    assert cache.identities == {}


def test_zero_ttl_expires_immediately():
    cache = UserIdentityCache(ttl=-1)
    cache.set("a", UserIdentity(account_id="a"))
    assert cache.get("a") is None