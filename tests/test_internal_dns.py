import ipaddress

import pytest

from minifly.internal_dns import InternalDnsResolver, extract_container_ip

IP1 = ipaddress.IPv4Address("172.19.0.2")
IP2 = ipaddress.IPv4Address("172.19.0.3")


@pytest.fixture
def resolver():
    return InternalDnsResolver()


def test_dns_registration(resolver):
    resolver.register_machine("myapp", "machine-1", IP1)
    assert resolver.resolve("myapp.internal") == [IP1]
    assert resolver.resolve("machine-1.vm.myapp.internal") == [IP1]


def test_multiple_machines(resolver):
    resolver.register_machine("myapp", "machine-1", IP1)
    resolver.register_machine("myapp", "machine-2", IP2)
    ips = resolver.resolve("myapp.internal")
    assert len(ips) == 2
    assert IP1 in ips
    assert IP2 in ips


def test_unregister_machine(resolver):
    resolver.register_machine("myapp", "machine-1", IP1)
    resolver.unregister_machine("myapp", "machine-1")
    assert resolver.resolve("myapp.internal") == []
    assert resolver.list_registrations() == {}


def test_register_accepts_string_address(resolver):
    resolver.register_machine("myapp", "machine-1", "172.19.0.2")
    assert resolver.resolve("myapp.internal") == [IP1]


def test_duplicate_address_listed_once(resolver):
    resolver.register_machine("myapp", "machine-1", IP1)
    resolver.register_machine("myapp", "machine-1", IP1)
    assert resolver.resolve("myapp.internal") == [IP1]


def test_local_6pn_domain(resolver):
    assert resolver.resolve("fly-local-6pn.internal") == [ipaddress.IPv4Address("172.17.0.1")]


def test_unknown_hostnames_resolve_to_nothing(resolver):
    resolver.register_machine("myapp", "machine-1", IP1)
    assert resolver.resolve("other.internal") == []
    assert resolver.resolve("example.com") == []
    assert resolver.resolve("machine-9.vm.myapp.internal") == []


def test_unregister_keeps_other_machines(resolver):
    resolver.register_machine("myapp", "machine-1", IP1)
    resolver.register_machine("myapp", "machine-2", IP2)
    resolver.unregister_machine("myapp", "machine-1")
    assert resolver.resolve("myapp.internal") == [IP2]
    assert resolver.resolve("machine-1.vm.myapp.internal") == []


def test_unregister_unknown_machine_changes_nothing(resolver):
    resolver.register_machine("myapp", "machine-1", IP1)
    resolver.unregister_machine("myapp", "missing")
    assert resolver.list_registrations() == {"myapp": [IP1]}


def test_list_registrations_is_a_copy(resolver):
    resolver.register_machine("myapp", "machine-1", IP1)
    snapshot = resolver.list_registrations()
    snapshot["myapp"].append(IP2)
    assert resolver.resolve("myapp.internal") == [IP1]


def test_extract_container_ip_bridge():
    networks = {"bridge": {"IPAddress": "172.17.0.2"}}
    assert extract_container_ip(networks) == ipaddress.IPv4Address("172.17.0.2")


def test_extract_container_ip_skips_empty_and_invalid():
    networks = {
        "a": {"IPAddress": ""},
        "b": {"IPAddress": "not-an-ip"},
        "c": {"Gateway": "172.18.0.1"},
        "d": {"IPAddress": "172.18.0.5"},
    }
    assert extract_container_ip(networks) == ipaddress.IPv4Address("172.18.0.5")


def test_extract_container_ip_none_cases():
    assert extract_container_ip({}) is None
    assert extract_container_ip([{"IPAddress": "172.17.0.2"}]) is None
    assert extract_container_ip({"bridge": {"IPAddress": ""}}) is None