import pytest

from venue_booking.credentials import CredentialStore, ExpiryPolicy


@pytest.mark.parametrize(
    "remaining, expected",
    [(-2, False), (-1, False), (0, True), (599, True), (600, False), (3600, False)],
)
def test_should_refresh(remaining, expected):
    policy = ExpiryPolicy(ttl_seconds=3600, refresh_window_seconds=600)
    assert policy.should_refresh(remaining) is expected


def test_zero_window_never_refreshes():
    policy = ExpiryPolicy(ttl_seconds=3600)
    assert not policy.should_refresh(0)
    assert not policy.should_refresh(10)


async def test_set_get_clear(redis_client):
    store = CredentialStore(redis_client, ExpiryPolicy(ttl_seconds=300))

    await store.set("token-1", "cust-1")
    assert await store.get("token-1") == "cust-1"
    assert 0 < await redis_client.ttl("credential:token-1") <= 300

    await store.clear("token-1")
    assert await store.get("token-1") is None


async def test_unknown_token(redis_client):
    store = CredentialStore(redis_client, ExpiryPolicy(ttl_seconds=300))
    assert await store.get("missing") is None


async def test_get_slides_expiry_inside_refresh_window(redis_client):
    store = CredentialStore(
        redis_client, ExpiryPolicy(ttl_seconds=3600, refresh_window_seconds=600)
    )
    await store.set("token-1", "cust-1")
    await redis_client.expire("credential:token-1", 30)

    assert await store.get("token-1") == "cust-1"
    assert await redis_client.ttl("credential:token-1") > 600


async def test_get_keeps_expiry_outside_refresh_window(redis_client):
    store = CredentialStore(
        redis_client, ExpiryPolicy(ttl_seconds=3600, refresh_window_seconds=600)
    )
    await store.set("token-1", "cust-1")
    await redis_client.expire("credential:token-1", 1200)

    await store.get("token-1")
    assert await redis_client.ttl("credential:token-1") <= 1200


async def test_issue_creates_unique_tokens(redis_client):
    store = CredentialStore(redis_client, ExpiryPolicy(ttl_seconds=300))

    first = await store.issue("cust-1")
    second = await store.issue("cust-1")

    assert first != second
    assert await store.get(first) == "cust-1"
    assert await store.get(second) == "cust-1"
