import pytest
from codeskins.entitlements import service as entitlements_service
from codeskins.errors import ConflictError, QuotaExceededError

def test_grant_creates_record_with_license_quota(store):
    assert entitlements_service.grant("u1", "p1", "lic-std", 3, order_id="order-9") is True
    record = entitlements_service.find("u1", "p1", "lic-std")
    assert record.download_count == 0
    assert record.max_downloads == 3
    assert record.order_id == "order-9"

def test_repeat_grant_leaves_record_untouched(store):
    store.add_entitlement("u1", "p1", "lic-std", download_count=2, max_downloads=3)
    assert entitlements_service.grant("u1", "p1", "lic-std", 10) is False
    record = entitlements_service.find("u1", "p1", "lic-std")
    assert (record.download_count, record.max_downloads) == (2, 3)

def test_consume_increments_until_quota(store):
    store.add_entitlement("u1", "p1", "lic-std", max_downloads=2)
    first = entitlements_service.consume(entitlements_service.find("u1", "p1", "lic-std"))
    second = entitlements_service.consume(first)
    assert (second.download_count, second.remaining) == (2, 0)
    assert second.last_download_at is not None
    with pytest.raises(QuotaExceededError):
        entitlements_service.consume(second)
    assert store.get_entitlement("u1", "p1", "lic-std")["download_count"] == 2

def test_unlimited_quota_never_exhausts(store):
    store.add_entitlement("u1", "p1", "lic-std", download_count=500, max_downloads=-1)
    record = entitlements_service.consume(entitlements_service.find("u1", "p1", "lic-std"))
    assert record.download_count == 501
    assert record.remaining == -1

def test_concurrent_last_unit_only_one_wins(store):
    store.add_entitlement("u1", "p1", "lic-std", download_count=0, max_downloads=1)
    stale = entitlements_service.find("u1", "p1", "lic-std")
    fired = {"done": False}

    def concurrent_download(record_id):
        # Une autre requête consomme la dernière unité juste avant notre CAS
        if not fired["done"]:
            fired["done"] = True
            store.downloads[record_id]["download_count"] = 1

    store.before_download_cas = concurrent_download
    with pytest.raises(QuotaExceededError):
        entitlements_service.consume(stale)
    assert store.get_entitlement("u1", "p1", "lic-std")["download_count"] == 1

def test_persistent_contention_is_a_conflict(store):
    store.add_entitlement("u1", "p1", "lic-std", download_count=0, max_downloads=-1)
    record = entitlements_service.find("u1", "p1", "lic-std")

    def always_bump(record_id):
        store.downloads[record_id]["download_count"] += 1

    store.before_download_cas = always_bump
    with pytest.raises(ConflictError):
        entitlements_service.consume(record)

def test_history_is_enriched_with_template_and_license(store):
    store.add_template("p1", title="Portfolio Pro")
    store.add_entitlement("u1", "p1", "lic-std")
    history = entitlements_service.list_for_user("u1")
    assert history[0]["templateId"] == "p1"
    assert history[0]["template"] == {"title": "Portfolio Pro"}
    assert history[0]["license"]["name"] == "Standard"
    assert entitlements_service.list_for_user("someone-else") == []
