import threading
import time

from conftest import future_iso

from eventra.models import BidRequestCreate, BidSubmitRequest, BookNowRequest, StaffJobCreate


def _race(calls):
    """Starts every call at once and returns "ok" or the exception class name per call."""
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def worker(index, call):
        barrier.wait()
        try:
            call()
            outcomes[index] = "ok"
        except Exception as exc:
            outcomes[index] = type(exc).__name__

    threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    return sorted(outcomes)


def _slow_reads(world, monkeypatch, method, collection):
    # Widens the gap between the check and the write.
    original = getattr(world.store, method)

    def slow(name, *args):
        result = original(name, *args)
        if name == collection:
            time.sleep(0.02)
        return result

    monkeypatch.setattr(world.store, method, slow)


def test_concurrent_direct_bookings_for_one_slot(world, monkeypatch):
    assert world.services.settings.serialize_conflict_checks is True
    customers = [world.identity(uid) for uid in ("cust_1", "cust_2") * 3]
    request = BookNowRequest(
        service_id="S1", provider_id="prov_1", event_date="2025-06-01", event_time="14:00", location="Hall", budget=1000
    )
    _slow_reads(world, monkeypatch, "list", "bookings")

    outcomes = _race([lambda c=c: world.services.bookings.create_direct_booking(c, request) for c in customers])
    assert outcomes == ["ConflictError"] * 5 + ["ok"]
    assert len(world.store.list("bookings")) == 1


def test_concurrent_bookings_sharing_only_the_provider(world, monkeypatch):
    customer = world.identity("cust_1")
    requests = [
        BookNowRequest(service_id=f"S{i}", provider_id="prov_1", event_date="2025-06-01", location="Hall", budget=500)
        for i in range(4)
    ]
    _slow_reads(world, monkeypatch, "list", "bookings")

    outcomes = _race([lambda r=r: world.services.bookings.create_direct_booking(customer, r) for r in requests])
    assert outcomes == ["ConflictError"] * 3 + ["ok"]


def test_concurrent_bids_from_one_provider(world, monkeypatch):
    bid_request = world.services.bids.create_bid_request(
        world.identity("cust_1"),
        BidRequestCreate(event_name="Gala", event_type="wedding", event_date="2025-09-20", location="Sydney", need_whole_team=True),
    )
    provider = world.identity("prov_1")
    offer = BidSubmitRequest(price=5000, description="Everything included")
    _slow_reads(world, monkeypatch, "get", "bidRequests")

    outcomes = _race([lambda: world.services.bids.submit_bid(provider, bid_request.id, offer) for _ in range(5)])
    assert outcomes == ["ConflictError"] * 4 + ["ok"]
    assert len(world.store.get("bidRequests", bid_request.id)["bids"]) == 1


def test_concurrent_accepts_award_one_bid(world, monkeypatch):
    customer = world.identity("cust_1")
    bid_request = world.services.bids.create_bid_request(
        customer,
        BidRequestCreate(event_name="Gala", event_type="wedding", event_date="2025-09-20", location="Sydney", need_whole_team=True),
    )
    bids = [
        world.services.bids.submit_bid(world.identity(uid), bid_request.id, BidSubmitRequest(price=4000, description="Offer"))
        for uid in ("prov_1", "prov_2")
    ]
    _slow_reads(world, monkeypatch, "get", "bidRequests")

    outcomes = _race(
        [lambda b=b: world.services.bids.decide_bid(customer, bid_request.id, b.bid_id, "accept") for b in bids]
    )
    assert outcomes == ["InvalidStateError", "ok"]
    stored = world.store.get("bidRequests", bid_request.id)
    assert sorted(b["status"] for b in stored["bids"]) == ["accepted", "rejected"]
    assert len(world.store.list("bookings")) == 1


def test_concurrent_staff_applications_count_once(world, monkeypatch):
    job = world.services.staff_jobs.post(
        world.identity("prov_1"),
        StaffJobCreate(job_name="Bar staff", date_time=future_iso(), pay=30, spots_needed=5, location="Sydney"),
    )
    seeker = world.identity("seeker_1")
    _slow_reads(world, monkeypatch, "list", "staff_applications")

    outcomes = _race([lambda: world.services.staff_jobs.apply(seeker, job.id) for _ in range(4)])
    assert outcomes == ["ConflictError"] * 3 + ["ok"]
    assert world.store.get("staff_jobs", job.id)["spotsApplied"] == 1
