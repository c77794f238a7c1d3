"""End-to-end tests for the /api/v1/network routes."""

from __future__ import annotations

BASE = "/api/v1/network"


def _create_subnet(client, **body):
    payload = {"router_id": 1, "cidr": "192.168.1.0/24", "name": "LAN-A"}
    payload.update(body)
    return client.post(f"{BASE}/subnets", json=payload)


def _address_id(client, subnet_id, address):
    resp = client.get(
        f"{BASE}/ip-addresses", params={"subnet_id": subnet_id, "search": address, "limit": 10}
    )
    assert resp.status_code == 200
    matches = [item for item in resp.json()["items"] if item["address"] == address]
    return matches[0]["id"]


def test_subnet_pool_and_assignment_flow(client, router, customer):
    resp = _create_subnet(client, type="private")
    assert resp.status_code == 201
    subnet = resp.json()
    assert subnet["subnet_type"] == "private"
    assert subnet["cidr"] == "192.168.1.0/24"

    resp = client.post(f"{BASE}/subnets/{subnet['id']}/generate-ips", json={})
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 256
    assert body["counts"]["available"] == 254
    assert body["counts"]["reserved"] == 2

    address_id = _address_id(client, subnet["id"], "192.168.1.10")
    resp = client.post(
        f"{BASE}/ip-addresses/{address_id}/assign", json={"customer_id": 42}
    )
    assert resp.status_code == 200
    assigned = resp.json()
    assert assigned["status"] == "assigned"
    assert assigned["first_name"] == "Ada"
    assert assigned["last_name"] == "Okafor"

    resp = client.get(f"{BASE}/subnets/{subnet['id']}/utilization")
    assert resp.json() == {"total": 256, "assigned": 1, "free": 253, "reserved": 2, "percent": 0}

    resp = _create_subnet(client, cidr="192.168.1.128/25", name="LAN-B")
    assert resp.status_code == 409
    error = resp.json()
    assert error["code"] == "subnet_overlap"
    assert "LAN-A (192.168.1.0/24)" in error["message"]
    assert error["details"]["subnets"][0]["id"] == subnet["id"]
    assert error["request_id"]


def test_generate_twice_returns_confirmation_payload(client, router):
    subnet_id = _create_subnet(client).json()["id"]
    client.post(f"{BASE}/subnets/{subnet_id}/generate-ips")

    resp = client.post(f"{BASE}/subnets/{subnet_id}/generate-ips", json={"regenerate": False})
    assert resp.status_code == 409
    details = resp.json()["details"]
    assert resp.json()["code"] == "pool_exists"
    assert details["requires_confirmation"] is True
    assert details["total"] == 256

    resp = client.post(f"{BASE}/subnets/{subnet_id}/generate-ips", json={"regenerate": True})
    assert resp.status_code == 200
    assert resp.json()["regenerated"] is True


def test_create_subnet_validation_errors(client, router):
    resp = _create_subnet(client, cidr="192.168.1.5/24")
    assert resp.status_code == 400
    assert resp.json()["code"] == "cidr_alignment"
    assert resp.json()["details"]["suggested_cidr"] == "192.168.1.0/24"

    resp = _create_subnet(client, cidr="10.0.0.0/31")
    assert resp.status_code == 400
    assert resp.json()["code"] == "cidr_range"

    resp = _create_subnet(client, cidr="bogus")
    assert resp.status_code == 400
    assert resp.json()["code"] == "cidr_format"

    resp = _create_subnet(client, router_id=555)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Router not found"


def test_subnet_crud_routes(client, router):
    subnet_id = _create_subnet(client).json()["id"]

    resp = client.get(f"{BASE}/subnets", params={"router_id": 1})
    assert resp.status_code == 200
    assert resp.json()["count"] == 1
    assert resp.json()["items"][0]["utilization"]["total"] == 0

    resp = client.put(f"{BASE}/subnets/{subnet_id}", json={"name": "LAN-A2", "gateway": "192.168.1.254"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "LAN-A2"
    assert resp.json()["effective_gateway"] == "192.168.1.254"

    resp = client.get(f"{BASE}/subnets/{subnet_id}/events")
    actions = [item["action"] for item in resp.json()["items"]]
    assert set(actions) == {"subnet_created", "subnet_updated"}

    resp = client.delete(f"{BASE}/subnets/{subnet_id}")
    assert resp.status_code == 204
    assert client.get(f"{BASE}/subnets/{subnet_id}").status_code == 404


def test_release_assign_next_and_seen(client, router, customer, service):
    subnet_id = _create_subnet(client).json()["id"]
    client.post(f"{BASE}/subnets/{subnet_id}/generate-ips")

    resp = client.post(
        f"{BASE}/subnets/{subnet_id}/assign-next",
        json={"customer_id": 42, "service_id": service.id},
    )
    assert resp.status_code == 200
    address = resp.json()
    assert address["address"] == "192.168.1.1"
    assert address["service_id"] == service.id

    resp = client.post(f"{BASE}/ip-addresses/{address['id']}/seen", json={})
    assert resp.status_code == 200
    assert resp.json()["last_seen_at"] is not None

    resp = client.post(f"{BASE}/ip-addresses/{address['id']}/assign", json={"customer_id": 42})
    assert resp.status_code == 409
    assert resp.json()["code"] == "invalid_state"

    resp = client.post(f"{BASE}/ip-addresses/{address['id']}/release")
    assert resp.status_code == 200
    assert resp.json()["status"] == "available"
    assert resp.json()["customer_id"] is None

    resp = client.post(f"{BASE}/ip-addresses/{address['id']}/release")
    assert resp.status_code == 409


def test_list_ip_addresses_by_status(client, router):
    subnet_id = _create_subnet(client).json()["id"]
    client.post(f"{BASE}/subnets/{subnet_id}/generate-ips")

    resp = client.get(
        f"{BASE}/ip-addresses", params={"subnet_id": subnet_id, "status": "reserved"}
    )
    assert resp.status_code == 200
    assert [item["address"] for item in resp.json()["items"]] == [
        "192.168.1.0",
        "192.168.1.255",
    ]
    assert all(item["reserved_reason"] for item in resp.json()["items"])

    resp = client.get(f"{BASE}/ip-addresses", params={"status": "leased"})
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_check_overlap_and_validate_cidr(client, router):
    subnet_id = _create_subnet(client).json()["id"]

    resp = client.post(f"{BASE}/check-overlap", json={"cidr": "192.168.0.0/16"})
    assert resp.status_code == 200
    assert resp.json()["overlaps"] is True
    assert resp.json()["subnets"][0]["cidr"] == "192.168.1.0/24"

    resp = client.post(
        f"{BASE}/check-overlap", json={"cidr": "192.168.1.0/25", "exclude_id": subnet_id}
    )
    assert resp.json() == {"overlaps": False, "subnets": []}

    resp = client.post(f"{BASE}/validate-cidr", json={"cidr": "192.168.1.5/24"})
    assert resp.status_code == 200
    assert resp.json()["is_valid"] is False
    assert resp.json()["suggested_cidr"] == "192.168.1.0/24"

    resp = client.post(f"{BASE}/validate-cidr", json={"cidr": "10.0.0.0/8"})
    assert resp.json()["network"]["total_addresses"] == 16777216


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
