import asyncio
import threading
from datetime import datetime, timedelta, timezone

import pytest

from service_marketplace_api.app.core.errors import ConflictError, MarketplaceError, ValidationError
from service_marketplace_api.app.schemas.service_request import ServiceRequestCreate
from service_marketplace_api.app.services.negotiation_service import NegotiationService
from tests.conftest import create_service, future_date, propose


def resolve(client, request_id: int, decision: str, actor: int):
    return client.post(
        f"/service-requests/{request_id}/resolve",
        json={"decision": decision, "actorId": actor},
    )


def test_create_request(client, users):
    service = create_service(client, users["alice"]["id"])
    response = propose(client, service["id"], users["bob"]["id"], value=120)
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["status"] == "pending"
    assert body["service"] == service["id"]
    assert body["proposer"] == users["bob"]["id"]
    assert body["proposedValue"] == 120


def test_create_request_validation(client, users):
    service = create_service(client, users["alice"]["id"])
    bob = users["bob"]["id"]
    yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()

    assert propose(client, service["id"], bob, value=0).status_code == 400
    assert propose(client, service["id"], bob, value=-10).status_code == 400
    past = propose(client, service["id"], bob, date=yesterday)
    assert past.status_code == 400
    assert past.json()["error"] == "ValidationError"
    assert client.get(f"/service-requests/{service['id']}").json() == []


def test_create_request_requires_open_service(client, users):
    alice, bob = users["alice"]["id"], users["bob"]["id"]
    assert propose(client, 999, bob).status_code == 404

    service = create_service(client, alice)
    client.patch(f"/services/{service['id']}/status", json={"requestedStatus": "canceled", "actorId": alice})
    closed = propose(client, service["id"], bob)
    assert closed.status_code == 404
    assert closed.json()["error"] == "NotFound"


def test_creator_cannot_propose_on_own_service(client, users):
    alice = users["alice"]["id"]
    service = create_service(client, alice)
    response = propose(client, service["id"], alice)
    assert response.status_code == 403


def test_unknown_proposer(client, users):
    service = create_service(client, users["alice"]["id"])
    assert propose(client, service["id"], 999).status_code == 404


def test_list_requests_oldest_first(client, users):
    service = create_service(client, users["alice"]["id"])
    first = propose(client, service["id"], users["bob"]["id"], value=100).json()
    second = propose(client, service["id"], users["carol"]["id"], value=90).json()
    listed = client.get(f"/service-requests/{service['id']}").json()
    assert [r["id"] for r in listed] == [first["id"], second["id"]]
    assert client.get("/service-requests/999").json() == []


def test_accept_closes_negotiation(client, users):
    alice, bob, carol = users["alice"]["id"], users["bob"]["id"], users["carol"]["id"]
    service = create_service(client, alice, value=150)
    r1 = propose(client, service["id"], bob, value=120).json()
    r2 = propose(client, service["id"], carol, value=100).json()

    response = resolve(client, r1["id"], "accept", alice)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["request"]["status"] == "accepted"
    assert body["service"]["status"] == "accepted"
    assert body["service"]["acceptedBy"] == bob
    assert body["service"]["proposedValue"] == 120
    assert body["service"]["value"] == 150

    statuses = {r["id"]: r["status"] for r in client.get(f"/service-requests/{service['id']}").json()}
    assert statuses == {r1["id"]: "accepted", r2["id"]: "declined"}

    # The service is no longer open, so the losing proposal cannot be accepted.
    late = resolve(client, r2["id"], "accept", alice)
    assert late.status_code == 409
    assert late.json()["error"] == "Conflict"
    assert client.get(f"/services/{service['id']}").json()["acceptedBy"] == bob

    # New proposals are refused once the service is accepted.
    assert propose(client, service["id"], carol).status_code == 404


def test_decline_touches_only_that_request(client, users):
    alice, bob, carol = users["alice"]["id"], users["bob"]["id"], users["carol"]["id"]
    service = create_service(client, alice)
    r1 = propose(client, service["id"], bob).json()
    r2 = propose(client, service["id"], carol).json()

    response = resolve(client, r1["id"], "decline", alice)
    assert response.status_code == 200
    assert response.json()["request"]["status"] == "declined"
    assert response.json()["service"]["status"] == "open"

    statuses = {r["id"]: r["status"] for r in client.get(f"/service-requests/{service['id']}").json()}
    assert statuses == {r1["id"]: "declined", r2["id"]: "pending"}

    again = resolve(client, r1["id"], "decline", alice)
    assert again.status_code == 409
    assert again.json()["error"] == "InvalidTransition"
    reopen = resolve(client, r1["id"], "accept", alice)
    assert reopen.status_code == 409
    assert reopen.json()["error"] == "InvalidTransition"


def test_only_creator_resolves(client, users):
    alice, bob, carol = users["alice"]["id"], users["bob"]["id"], users["carol"]["id"]
    service = create_service(client, alice)
    r1 = propose(client, service["id"], bob).json()

    for actor in (bob, carol):
        response = resolve(client, r1["id"], "accept", actor)
        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"
    assert client.get(f"/services/{service['id']}").json()["status"] == "open"


def test_resolve_unknown_request_or_decision(client, users):
    assert resolve(client, 999, "accept", users["alice"]["id"]).status_code == 404
    service = create_service(client, users["alice"]["id"])
    r1 = propose(client, service["id"], users["bob"]["id"]).json()
    assert resolve(client, r1["id"], "maybe", users["alice"]["id"]).status_code == 400


def test_concurrent_accepts_only_one_wins(client, users):
    alice, bob, carol = users["alice"]["id"], users["bob"]["id"], users["carol"]["id"]
    service = create_service(client, alice)
    r1 = propose(client, service["id"], bob, date=future_date(3)).json()
    r2 = propose(client, service["id"], carol, date=future_date(4)).json()

    barrier = threading.Barrier(2)
    outcomes = {}

    def accept(request_id):
        barrier.wait()
        try:
            _, accepted = asyncio.run(NegotiationService.resolve_request(request_id, "accept", alice))
            outcomes[request_id] = accepted.accepted_by
        except MarketplaceError as e:
            outcomes[request_id] = e

    threads = [threading.Thread(target=accept, args=(rid,)) for rid in (r1["id"], r2["id"])]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [value for value in outcomes.values() if isinstance(value, int)]
    losers = [value for value in outcomes.values() if isinstance(value, MarketplaceError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], ConflictError)

    final = client.get(f"/services/{service['id']}").json()
    assert final["status"] == "accepted"
    assert final["acceptedBy"] == winners[0]
    statuses = sorted(r["status"] for r in client.get(f"/service-requests/{service['id']}").json())
    assert statuses == ["accepted", "declined"]


@pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity"])
def test_create_request_rejects_non_finite_value(client, users, value):
    service = create_service(client, users["alice"]["id"])
    response = propose(client, service["id"], users["bob"]["id"], value=value)
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"
    assert client.get(f"/service-requests/{service['id']}").json() == []


def test_negotiation_rejects_non_finite_value_without_schema(client, users):
    service = create_service(client, users["alice"]["id"])
    data = ServiceRequestCreate.model_construct(
        service=service["id"],
        proposer=users["bob"]["id"],
        proposed_value=float("inf"),
        proposed_date=datetime.now(timezone.utc) + timedelta(days=1),
    )
    with pytest.raises(ValidationError):
        asyncio.run(NegotiationService.create_request(data))
