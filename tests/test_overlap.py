"""Tests for subnet overlap detection."""

import itertools
import uuid

import pytest

from app.schemas.network import SubnetCreate
from app.services import network as network_service
from app.services.network import cidr as cidr_rules
from app.services.network.errors import OverlapConflict
from app.services.network.overlap import find_overlaps, ranges_overlap


def _net(cidr, name=None, id=None):
    network = cidr_rules.validate(cidr)
    return cidr_rules.NetworkRange(network=network.network, prefix=network.prefix, id=id, name=name)


SAMPLES = ["10.0.0.0/24", "10.0.0.0/25", "10.0.0.128/25", "10.0.1.0/24", "10.0.0.0/16"]


@pytest.mark.parametrize(("a", "b"), list(itertools.product(SAMPLES, SAMPLES)))
def test_overlap_is_symmetric(a, b):
    assert ranges_overlap(_net(a), _net(b)) == ranges_overlap(_net(b), _net(a))


def test_subset_overlaps():
    assert ranges_overlap(_net("10.0.0.0/24"), _net("10.0.0.0/25"))


def test_adjacent_halves_do_not_overlap():
    assert not ranges_overlap(_net("10.0.0.0/25"), _net("10.0.0.128/25"))


def test_superset_reports_every_swallowed_subnet_in_address_order():
    existing = [
        _net("10.0.2.0/24", name="C", id=uuid.uuid4()),
        _net("10.0.0.0/24", name="A", id=uuid.uuid4()),
        _net("10.1.0.0/24", name="outside", id=uuid.uuid4()),
        _net("10.0.1.0/24", name="B", id=uuid.uuid4()),
    ]
    conflicts = find_overlaps(_net("10.0.0.0/22"), existing)
    assert [item.name for item in conflicts] == ["A", "B", "C"]


def test_exclude_id_skips_the_edited_subnet():
    subnet_id = uuid.uuid4()
    existing = [_net("10.0.0.0/24", id=subnet_id)]
    assert find_overlaps(_net("10.0.0.0/25"), existing, exclude_id=str(subnet_id)) == []
    assert len(find_overlaps(_net("10.0.0.0/25"), existing)) == 1


def test_create_rejects_overlap_naming_the_conflict(db_session, subnet, router):
    with pytest.raises(OverlapConflict) as exc:
        network_service.subnets.create(
            db_session, SubnetCreate(router_id=router.id, cidr="192.168.1.128/25")
        )
    assert exc.value.message == "192.168.1.128/25 overlaps with: LAN-A (192.168.1.0/24)"
    assert exc.value.subnets[0]["id"] == str(subnet.id)


def test_check_overlap(db_session, subnet):
    result = network_service.subnets.check_overlap(db_session, "192.168.0.0/16")
    assert result["overlaps"] is True
    assert result["subnets"] == [{"id": str(subnet.id), "cidr": "192.168.1.0/24", "name": "LAN-A"}]

    assert network_service.subnets.check_overlap(
        db_session, "192.168.1.0/25", exclude_id=subnet.id
    ) == {"overlaps": False, "subnets": []}
    assert network_service.subnets.check_overlap(db_session, "192.168.2.0/24")["overlaps"] is False
