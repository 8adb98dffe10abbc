import pytest

BID_REQUEST = {
    "eventName": "Spring Wedding",
    "eventType": "wedding",
    "eventDate": "2025-09-20",
    "location": "Sydney",
    "budget": 20000,
    "guestCount": 120,
    "requirements": "Outdoor ceremony",
    "needWholeTeam": True,
}


def _create_request(world, uid="cust_1", **overrides):
    response = world.client.post("/bid-request", json={**BID_REQUEST, **overrides}, headers=world.headers(uid))
    assert response.status_code == 201
    return response.json()["data"]


def _bid(world, request_id, uid, price=5000):
    return world.client.post(
        f"/bid-request/{request_id}/bid",
        json={"price": price, "description": f"Offer from {uid}", "estimatedTime": "2 days"},
        headers=world.headers(uid),
    )


def test_create_bid_request_starts_open_without_bids(world):
    data = _create_request(world)
    assert data["status"] == "open"
    assert data["bids"] == []
    assert data["customerId"] == "cust_1"
    assert data["budget"] == 20000


def test_create_bid_request_requires_core_fields(world):
    response = world.client.post(
        "/bid-request", json={**BID_REQUEST, "location": ""}, headers=world.headers("cust_1")
    )
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


def test_providers_cannot_create_bid_requests(world):
    response = world.client.post("/bid-request", json=BID_REQUEST, headers=world.headers("prov_1"))
    assert response.status_code == 403


def test_whole_team_request_fans_out_to_matching_companies(world):
    data = _create_request(world)
    notified = {n["userId"] for n in world.store.list("notifications") if n["type"] == "new_bid_request"}
    # prov_1 lists "wedding"; prov_2 is a caterer; the pending photographer is skipped.
    assert notified == {"prov_1", "prov_2"}
    for notification in world.notifications_for("prov_1"):
        assert notification["data"] == {"bidRequestId": data["id"]}
    assert world.store.list("job_postings") == []


def test_freelancer_request_targets_freelancers_and_creates_posting(world):
    data = _create_request(world, needWholeTeam=False)
    notified = {n["userId"] for n in world.store.list("notifications") if n["type"] == "new_bid_request"}
    assert notified == {"free_1", "free_2"}

    postings = world.store.list("job_postings")
    assert len(postings) == 1
    assert postings[0]["bidRequestId"] == data["id"]
    assert postings[0]["status"] == "active"


def test_fan_out_failure_does_not_fail_creation(world, monkeypatch):
    def broken_batch(collection, docs):
        raise RuntimeError("batch rejected")

    world.headers("cust_1")
    monkeypatch.setattr(world.store, "create_many", broken_batch)
    _create_request(world)
    assert len(world.store.list("bidRequests")) == 1


def test_submit_bid_notifies_customer(world):
    request_id = _create_request(world)["id"]
    response = _bid(world, request_id, "prov_1")
    assert response.status_code == 201
    bid = response.json()["data"]
    assert bid["status"] == "pending"
    assert bid["providerId"] == "prov_1"
    assert bid["bidId"].startswith("prov_1-")

    new_bid = [n for n in world.notifications_for("cust_1") if n["type"] == "new_bid"]
    assert len(new_bid) == 1
    assert new_bid[0]["data"]["bidRequestId"] == request_id


def test_duplicate_bid_is_rejected_with_400(world):
    request_id = _create_request(world)["id"]
    assert _bid(world, request_id, "prov_1").status_code == 201
    duplicate = _bid(world, request_id, "prov_1", price=4000)
    assert duplicate.status_code == 400
    assert duplicate.json()["error"] == "CONFLICT"
    assert len(world.store.get("bidRequests", request_id)["bids"]) == 1


def test_bid_requires_price_and_description(world):
    request_id = _create_request(world)["id"]
    response = world.client.post(
        f"/bid-request/{request_id}/bid", json={"price": 100}, headers=world.headers("prov_1")
    )
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


def test_bid_on_missing_request_is_not_found(world):
    assert _bid(world, "nope", "prov_1").status_code == 404


def test_customers_cannot_bid(world):
    request_id = _create_request(world)["id"]
    assert _bid(world, request_id, "cust_2").status_code == 403


def test_scenario_accepting_one_bid_awards_request(world):
    request_id = _create_request(world)["id"]
    bid_a = _bid(world, request_id, "prov_1", price=4800).json()["data"]
    bid_b = _bid(world, request_id, "prov_2", price=5200).json()["data"]

    response = world.client.patch(
        f"/bid-request/{request_id}/bid/{bid_a['bidId']}", json={"action": "accept"}, headers=world.headers("cust_1")
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "accepted"

    stored = world.store.get("bidRequests", request_id)
    assert stored["status"] == "awarded"
    statuses = {bid["bidId"]: bid["status"] for bid in stored["bids"]}
    assert statuses == {bid_a["bidId"]: "accepted", bid_b["bidId"]: "rejected"}

    bookings = [b for b in world.store.list("bookings") if b.get("bidRequestId") == request_id]
    assert len(bookings) == 1
    assert bookings[0]["providerId"] == "prov_1"
    assert bookings[0]["price"] == 4800
    assert bookings[0]["status"] == "confirmed"

    accepted = [n for n in world.notifications_for("prov_1") if n["type"] == "bid_accepted"]
    assert accepted[0]["data"]["bookingId"] == bookings[0]["id"]


def test_awarded_request_stops_accepting_bids_and_decisions(world):
    request_id = _create_request(world)["id"]
    bid_a = _bid(world, request_id, "prov_1").json()["data"]
    headers = world.headers("cust_1")
    world.client.patch(f"/bid-request/{request_id}/bid/{bid_a['bidId']}", json={"action": "accept"}, headers=headers)

    late = _bid(world, request_id, "free_1")
    assert late.status_code == 400
    assert late.json()["error"] == "INVALID_STATE"

    again = world.client.patch(f"/bid-request/{request_id}/bid/{bid_a['bidId']}", json={"action": "accept"}, headers=headers)
    assert again.status_code == 400
    assert len(world.store.list("bookings")) == 1


def test_reject_bid_by_provider_id(world):
    request_id = _create_request(world)["id"]
    _bid(world, request_id, "prov_1")
    response = world.client.patch(
        f"/bid-request/{request_id}/bid/prov_1", json={"action": "reject"}, headers=world.headers("cust_1")
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "rejected"
    assert world.store.get("bidRequests", request_id)["status"] == "open"
    assert world.store.list("bookings") == []
    assert [n["type"] for n in world.notifications_for("prov_1")][-1] == "bid_rejected"


def test_rejected_bid_cannot_be_accepted(world):
    request_id = _create_request(world)["id"]
    _bid(world, request_id, "prov_1")
    headers = world.headers("cust_1")
    world.client.patch(f"/bid-request/{request_id}/bid/prov_1", json={"action": "reject"}, headers=headers)
    response = world.client.patch(f"/bid-request/{request_id}/bid/prov_1", json={"action": "accept"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_STATE"


@pytest.mark.parametrize("action", [None, "maybe"])
def test_decide_bid_rejects_unknown_action(world, action):
    request_id = _create_request(world)["id"]
    _bid(world, request_id, "prov_1")
    response = world.client.patch(
        f"/bid-request/{request_id}/bid/prov_1", json={"action": action}, headers=world.headers("cust_1")
    )
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


def test_decide_bid_requires_ownership(world):
    request_id = _create_request(world)["id"]
    _bid(world, request_id, "prov_1")
    response = world.client.patch(
        f"/bid-request/{request_id}/bid/prov_1", json={"action": "accept"}, headers=world.headers("cust_2")
    )
    assert response.status_code == 403


def test_decide_unknown_bid_is_not_found(world):
    request_id = _create_request(world)["id"]
    response = world.client.patch(
        f"/bid-request/{request_id}/bid/ghost", json={"action": "accept"}, headers=world.headers("cust_1")
    )
    assert response.status_code == 404


def test_delete_notifies_pending_bidders_and_closes_posting(world):
    request_id = _create_request(world, needWholeTeam=False)["id"]
    _bid(world, request_id, "free_1")
    _bid(world, request_id, "free_2")
    headers = world.headers("cust_1")
    world.client.patch(f"/bid-request/{request_id}/bid/free_2", json={"action": "reject"}, headers=headers)

    response = world.client.delete(f"/bid-request/{request_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"id": request_id}
    assert world.store.get("bidRequests", request_id) is None

    assert "bid_request_deleted" in [n["type"] for n in world.notifications_for("free_1")]
    assert "bid_request_deleted" not in [n["type"] for n in world.notifications_for("free_2")]
    assert [job["status"] for job in world.store.list("job_postings")] == ["closed"]


def test_delete_with_accepted_bid_is_refused(world):
    request_id = _create_request(world)["id"]
    _bid(world, request_id, "prov_1")
    headers = world.headers("cust_1")
    world.client.patch(f"/bid-request/{request_id}/bid/prov_1", json={"action": "accept"}, headers=headers)

    response = world.client.delete(f"/bid-request/{request_id}", headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_STATE"
    assert world.store.get("bidRequests", request_id) is not None


def test_delete_by_other_customer_is_forbidden(world):
    request_id = _create_request(world)["id"]
    response = world.client.delete(f"/bid-request/{request_id}", headers=world.headers("cust_2"))
    assert response.status_code == 403


def test_open_listing_hides_bids(world):
    open_id = _create_request(world)["id"]
    _bid(world, open_id, "prov_1")
    awarded_id = _create_request(world, eventName="Corporate Gala")["id"]
    _bid(world, awarded_id, "prov_2")
    world.client.patch(f"/bid-request/{awarded_id}/bid/prov_2", json={"action": "accept"}, headers=world.headers("cust_1"))

    response = world.client.get("/bid-requests", headers=world.headers("prov_2"))
    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 1
    assert body["data"][0]["id"] == open_id
    assert "bids" not in body["data"][0]


def test_provider_listing_marks_own_bids(world):
    open_id = _create_request(world)["id"]
    _bid(world, open_id, "prov_1")
    _bid(world, open_id, "prov_2")
    other_id = _create_request(world, eventName="Birthday")["id"]

    response = world.client.get("/provider-bid-requests", headers=world.headers("prov_1"))
    assert response.status_code == 200
    rows = {row["id"]: row for row in response.json()["data"]}
    assert rows[open_id]["hasProviderBid"] is True
    assert rows[open_id]["providerBid"]["providerId"] == "prov_1"
    assert rows[open_id]["bidCount"] == 2
    assert rows[other_id]["hasProviderBid"] is False
    assert rows[other_id]["providerBid"] is None


def test_provider_listing_keeps_closed_requests_with_own_bid(world):
    request_id = _create_request(world)["id"]
    _bid(world, request_id, "prov_1")
    world.client.patch(f"/bid-request/{request_id}/bid/prov_1", json={"action": "accept"}, headers=world.headers("cust_1"))

    mine = world.client.get("/provider-bid-requests", headers=world.headers("prov_1")).json()["data"]
    assert [row["id"] for row in mine] == [request_id]
    others = world.client.get("/provider-bid-requests", headers=world.headers("prov_2")).json()["data"]
    assert others == []


def test_my_bid_requests_filters_by_owner_and_status(world):
    first = _create_request(world)["id"]
    _create_request(world, eventName="Second")
    _create_request(world, uid="cust_2", eventName="Not mine")
    _bid(world, first, "prov_1")
    world.client.patch(f"/bid-request/{first}/bid/prov_1", json={"action": "accept"}, headers=world.headers("cust_1"))

    everything = world.client.get("/my-bid-requests", headers=world.headers("cust_1")).json()
    assert everything["pagination"]["total"] == 2

    awarded = world.client.get("/my-bid-requests", params={"status": "awarded"}, headers=world.headers("cust_1")).json()
    assert [row["id"] for row in awarded["data"]] == [first]
    assert awarded["data"][0]["bids"][0]["status"] == "accepted"
