import asyncio
import json
import threading

import pytest

from service_marketplace_api.app.core.config import settings
from service_marketplace_api.app.core.errors import ConflictError, MarketplaceError
from service_marketplace_api.app.schemas.service import ServiceStatus
from service_marketplace_api.app.services import service_lifecycle
from service_marketplace_api.app.services.service_lifecycle import ServiceLifecycle, can_transition
from tests.conftest import ADDRESS, PNG_BYTES, create_service, propose


def service_form(creator: int, **extra) -> dict:
    form = {
        "name": "Walk the dog",
        "description": "Two walks a day",
        "value": "80",
        "serviceType": "animal",
        "creator": str(creator),
        "location": json.dumps(ADDRESS),
    }
    form.update(extra)
    return form


def set_status(client, service_id: int, status: str, actor: int):
    return client.patch(
        f"/services/{service_id}/status",
        json={"requestedStatus": status, "actorId": actor},
    )


@pytest.mark.parametrize(
    "current, requested, allowed",
    [
        (ServiceStatus.OPEN, ServiceStatus.ACCEPTED, True),
        (ServiceStatus.OPEN, ServiceStatus.CANCELED, True),
        (ServiceStatus.OPEN, ServiceStatus.COMPLETED, False),
        (ServiceStatus.ACCEPTED, ServiceStatus.COMPLETED, True),
        (ServiceStatus.ACCEPTED, ServiceStatus.CANCELED, True),
        (ServiceStatus.ACCEPTED, ServiceStatus.OPEN, False),
        (ServiceStatus.COMPLETED, ServiceStatus.CANCELED, False),
        (ServiceStatus.CANCELED, ServiceStatus.OPEN, False),
    ],
)
def test_transition_table(current, requested, allowed):
    assert can_transition(current, requested) is allowed


def test_create_service_defaults(client, users):
    service = create_service(client, users["alice"]["id"])
    assert service["status"] == "open"
    assert service["creator"] == users["alice"]["id"]
    assert service["acceptedBy"] is None
    assert service["proposedValue"] is None
    assert service["images"] == []
    assert service["serviceType"] == "plumber"
    assert service["location"]["postalCode"] == "80000-000"


def test_create_service_with_images(client, users, upload_dir):
    response = client.post(
        "/services/create",
        data=service_form(users["alice"]["id"]),
        files=[
            ("images", ("one.png", PNG_BYTES, "image/png")),
            ("images", ("two.jpg", b"\xff\xd8\xff", "image/jpeg")),
        ],
    )
    assert response.status_code == 201, response.text
    images = response.json()["images"]
    assert len(images) == 2
    assert images[0].endswith(".png")
    assert images[1].endswith(".jpeg")
    assert len(list(upload_dir.iterdir())) == 2
    assert client.get("/" + images[0]).content == PNG_BYTES


def test_create_service_rejects_bad_image_before_storing(client, users, upload_dir):
    response = client.post(
        "/services/create",
        data=service_form(users["alice"]["id"]),
        files=[
            ("images", ("one.png", PNG_BYTES, "image/png")),
            ("images", ("evil.exe", b"MZ", "application/octet-stream")),
        ],
    )
    assert response.status_code == 400
    assert "jpeg, jpg, png, gif" in response.json()["message"]
    assert not any(upload_dir.iterdir())


def test_create_service_limits_image_count(client, users, monkeypatch):
    monkeypatch.setattr(settings, "max_service_images", 1)
    response = client.post(
        "/services/create",
        data=service_form(users["alice"]["id"]),
        files=[
            ("images", ("one.png", PNG_BYTES, "image/png")),
            ("images", ("two.png", PNG_BYTES, "image/png")),
        ],
    )
    assert response.status_code == 400


def test_create_service_unknown_creator_discards_images(client, upload_dir):
    response = client.post(
        "/services/create",
        data=service_form(999),
        files=[("images", ("one.png", PNG_BYTES, "image/png"))],
    )
    assert response.status_code == 404
    assert not any(upload_dir.iterdir())


@pytest.mark.parametrize(
    "override",
    [{"value": "0"}, {"value": "-5"}, {"serviceType": "astrology"}, {"location": "{not json"}],
)
def test_create_service_validation(client, users, override):
    response = client.post("/services/create", data=service_form(users["alice"]["id"], **override))
    assert response.status_code == 400


def test_list_services_filters(client, users):
    alice, bob = users["alice"]["id"], users["bob"]["id"]
    first = create_service(client, alice, service_type="plumber")
    second = create_service(client, bob, service_type="cleaning")
    third = create_service(client, alice, service_type="auto repair")
    assert set_status(client, third["id"], "canceled", alice).status_code == 200

    everything = client.get("/services").json()
    assert [s["id"] for s in everything] == [third["id"], second["id"], first["id"]]

    open_ids = [s["id"] for s in client.get("/services", params={"status": "open"}).json()]
    assert open_ids == [second["id"], first["id"]]

    by_alice = client.get("/services", params={"creator": alice}).json()
    assert {s["id"] for s in by_alice} == {first["id"], third["id"]}

    by_type = client.get("/services", params={"serviceType": "auto repair"}).json()
    assert [s["id"] for s in by_type] == [third["id"]]

    assert client.get("/services", params={"status": "bogus"}).status_code == 400


def test_get_service(client, users):
    service = create_service(client, users["alice"]["id"])
    assert client.get(f"/services/{service['id']}").json()["name"] == "Fix kitchen sink"
    missing = client.get("/services/999")
    assert missing.status_code == 404
    assert missing.json() == {"message": "Service 999 not found", "error": "NotFound"}


def test_edit_details_by_creator(client, users):
    alice = users["alice"]["id"]
    service = create_service(client, alice)
    response = client.patch(f"/services/{service['id']}", json={"actorId": alice, "value": 175.5})
    assert response.status_code == 200
    body = response.json()
    assert body["value"] == 175.5
    assert body["name"] == service["name"]
    assert body["status"] == "open"


def test_edit_details_rules(client, users):
    alice, bob = users["alice"]["id"], users["bob"]["id"]
    service = create_service(client, alice)
    url = f"/services/{service['id']}"

    forbidden = client.patch(url, json={"actorId": bob, "name": "Mine now"})
    assert forbidden.status_code == 403
    assert forbidden.json()["error"] == "Forbidden"

    empty = client.patch(url, json={"actorId": alice})
    assert empty.status_code == 400

    assert set_status(client, service["id"], "canceled", alice).status_code == 200
    closed = client.patch(url, json={"actorId": alice, "name": "Too late"})
    assert closed.status_code == 409
    assert closed.json()["error"] == "InvalidTransition"
    assert client.get(url).json()["name"] == service["name"]


def test_invalid_transition_leaves_service_unchanged(client, users):
    alice = users["alice"]["id"]
    service = create_service(client, alice)
    response = set_status(client, service["id"], "completed", alice)
    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransition"
    assert client.get(f"/services/{service['id']}").json()["status"] == "open"


def test_unknown_status_is_rejected(client, users):
    service = create_service(client, users["alice"]["id"])
    assert set_status(client, service["id"], "paused", users["alice"]["id"]).status_code == 400


def test_only_creator_cancels(client, users):
    alice, bob = users["alice"]["id"], users["bob"]["id"]
    service = create_service(client, alice)
    assert set_status(client, service["id"], "canceled", bob).status_code == 403
    response = set_status(client, service["id"], "canceled", alice)
    assert response.status_code == 200
    assert response.json()["status"] == "canceled"
    assert response.json()["acceptedBy"] is None


def test_accept_requires_pending_proposal(client, users):
    alice, bob = users["alice"]["id"], users["bob"]["id"]
    service = create_service(client, alice)

    assert set_status(client, service["id"], "accepted", alice).status_code == 403
    no_proposal = set_status(client, service["id"], "accepted", bob)
    assert no_proposal.status_code == 403
    assert client.get(f"/services/{service['id']}").json()["status"] == "open"


def test_accept_by_proposer_then_complete(client, users):
    alice, bob, carol = users["alice"]["id"], users["bob"]["id"], users["carol"]["id"]
    service = create_service(client, alice)
    bob_request = propose(client, service["id"], bob, value=130).json()
    carol_request = propose(client, service["id"], carol, value=110).json()

    accepted = set_status(client, service["id"], "accepted", bob)
    assert accepted.status_code == 200
    body = accepted.json()
    assert body["status"] == "accepted"
    assert body["acceptedBy"] == bob
    assert body["proposedValue"] == 130

    statuses = {r["id"]: r["status"] for r in client.get(f"/service-requests/{service['id']}").json()}
    assert statuses == {bob_request["id"]: "accepted", carol_request["id"]: "declined"}

    # Only the creator closes an accepted service.
    assert set_status(client, service["id"], "completed", bob).status_code == 403
    completed = set_status(client, service["id"], "completed", alice)
    assert completed.status_code == 200
    assert completed.json()["acceptedBy"] == bob

    assert set_status(client, service["id"], "canceled", alice).status_code == 409


def test_cancel_accepted_service_releases_provider(client, users):
    alice, bob = users["alice"]["id"], users["bob"]["id"]
    service = create_service(client, alice)
    propose(client, service["id"], bob)
    assert set_status(client, service["id"], "accepted", bob).status_code == 200

    canceled = set_status(client, service["id"], "canceled", alice)
    assert canceled.status_code == 200
    assert canceled.json()["status"] == "canceled"
    assert canceled.json()["acceptedBy"] is None


def test_history_records_lifecycle(client, users):
    alice, bob = users["alice"]["id"], users["bob"]["id"]
    service = create_service(client, alice)
    client.patch(f"/services/{service['id']}", json={"actorId": alice, "value": 200})
    propose(client, service["id"], bob)
    set_status(client, service["id"], "accepted", bob)
    set_status(client, service["id"], "completed", alice)

    history = client.get(f"/services/{service['id']}/history").json()
    assert [entry["action"] for entry in history] == ["create", "update", "transition", "transition"]
    assert history[2]["details"]["to"] == "accepted"
    assert history[2]["details"]["accepted_by"] == bob
    assert history[3]["userId"] == alice

    assert client.get("/services/999/history").status_code == 404


def test_create_service_rejects_non_finite_value(client, users):
    for value in ("nan", "inf", "-inf"):
        response = client.post("/services/create", data=service_form(users["alice"]["id"], value=value))
        assert response.status_code == 400, value
    assert client.get("/services").json() == []


def test_edit_details_rejects_non_finite_value(client, users):
    alice = users["alice"]["id"]
    service = create_service(client, alice, value=150)
    for value in ("NaN", "Infinity"):
        response = client.patch(f"/services/{service['id']}", json={"actorId": alice, "value": value})
        assert response.status_code == 400
    assert client.get(f"/services/{service['id']}").json()["value"] == 150


def test_accepting_closed_service_is_invalid_transition(client, users):
    alice, bob = users["alice"]["id"], users["bob"]["id"]
    service = create_service(client, alice)
    propose(client, service["id"], bob)
    assert set_status(client, service["id"], "canceled", alice).status_code == 200

    response = set_status(client, service["id"], "accepted", bob)
    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransition"


def test_concurrent_status_accepts_only_one_wins(client, users, monkeypatch):
    alice, bob, carol = users["alice"]["id"], users["bob"]["id"], users["carol"]["id"]
    service = create_service(client, alice)
    propose(client, service["id"], bob)
    propose(client, service["id"], carol)

    barrier = threading.Barrier(2)
    outcomes = {}
    read_status = service_lifecycle.read_status

    # Both callers see the service open before either takes the write lock.
    def read_then_wait(service_id):
        status = read_status(service_id)
        barrier.wait()
        return status

    monkeypatch.setattr(service_lifecycle, "read_status", read_then_wait)

    def accept(actor):
        try:
            accepted = asyncio.run(ServiceLifecycle.update_service_status(service["id"], "accepted", actor))
            outcomes[actor] = accepted.accepted_by
        except MarketplaceError as e:
            outcomes[actor] = e

    threads = [threading.Thread(target=accept, args=(actor,)) for actor in (bob, carol)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [actor for actor, value in outcomes.items() if value == actor]
    losers = [value for value in outcomes.values() if isinstance(value, MarketplaceError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], ConflictError)

    final = client.get(f"/services/{service['id']}").json()
    assert final["status"] == "accepted"
    assert final["acceptedBy"] == winners[0]
    statuses = sorted(r["status"] for r in client.get(f"/service-requests/{service['id']}").json())
    assert statuses == ["accepted", "declined"]
