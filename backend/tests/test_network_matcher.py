import logging

import pytest

from photo_rbac.auth import network


@pytest.mark.parametrize(
    ("client_address", "allow_list", "expected"),
    [
        ("203.0.113.7", [], True),
        ("203.0.113.7", ["203.0.113.0/24"], True),
        ("198.51.100.1", ["203.0.113.0/24"], False),
        ("10.0.0.5", ["10.0.0.5"], True),
        ("10.0.0.6", ["10.0.0.5"], False),
        ("10.0.0.6", ["192.168.0.0/16", "10.0.0.0/8"], True),
        ("2001:db8::1", ["2001:db8::/32"], True),
        ("2001:db9::1", ["2001:db8::/32"], False),
        ("::ffff:10.0.0.5", ["10.0.0.0/24"], True),
        ("10.0.0.5", ["::ffff:10.0.0.0/120"], True),
        ("10.0.0.5", ["2001:db8::/32"], False),
        ("10.0.0.5", ["10.0.0.9/24"], True),
        ("[2001:db8::1]", ["2001:db8::1"], True),
        ("2001:db8::1", ["::/0"], True),
        ("10.0.0.5", ["::/0"], False),
        ("::ffff:10.0.0.5", ["::/0"], False),
        ("::ffff:10.0.0.5", ["0.0.0.0/0"], True),
        ("::ffff:10.0.0.5", ["::ffff:0:0/96"], True),
    ],
)
def test_matches(client_address, allow_list, expected) -> None:
    assert network.matches(client_address, allow_list) is expected


def test_empty_list_allows_missing_address() -> None:
    assert network.matches(None, []) is True


@pytest.mark.parametrize("client_address", [None, "", "not-an-ip", "300.1.1.1"])
def test_malformed_client_address_never_matches(client_address, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="photo_rbac.network"):
        assert network.matches(client_address, ["0.0.0.0/0"]) is False
    assert caplog.records


def test_bad_entry_only_fails_itself(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="photo_rbac.network"):
        assert network.matches("10.1.2.3", ["garbage", "10.0.0.0/8"]) is True
        assert network.matches("10.1.2.3", ["garbage"]) is False
    assert any("garbage" in record.getMessage() for record in caplog.records)


def test_validate_allow_list_strips_and_keeps_order() -> None:
    assert network.validate_allow_list([" 10.0.0.0/8", "203.0.113.4 "]) == [
        "10.0.0.0/8",
        "203.0.113.4",
    ]


def test_validate_allow_list_names_invalid_entries() -> None:
    with pytest.raises(ValueError, match="not-an-ip") as excinfo:
        network.validate_allow_list(["10.0.0.0/8", "not-an-ip", "10.0.0.0/33"])
    assert "10.0.0.0/33" in str(excinfo.value)


def test_parse_network_spec_single_host() -> None:
    parsed = network.parse_network_spec("192.0.2.1")
    assert parsed.num_addresses == 1
