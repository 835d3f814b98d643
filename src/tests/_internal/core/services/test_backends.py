import pytest

from routesync._internal.core.errors import ParseError
from routesync._internal.core.models.orders import AddInstance, Instance
from routesync._internal.core.models.routing import RoutingConfig
from routesync._internal.core.services.backends import AuthorityBackendSource, parse_authority


class TestParseAuthority:
    @pytest.mark.parametrize(
        "authority, expected",
        [
            ("10.0.0.1", ("10.0.0.1", 80)),
            ("10.0.0.1:8080", ("10.0.0.1", 8080)),
            ("backend.local:65535", ("backend.local", 65535)),
        ],
    )
    def test_parses(self, authority, expected):
        assert parse_authority(authority) == expected

    @pytest.mark.parametrize(
        "authority",
        [
            "10.0.0.1:",
            "10.0.0.1:http",
            "10.0.0.1:0",
            "10.0.0.1:65536",
            "10.0.0.1:-1",
            "10.0.0.1:\N{SUPERSCRIPT TWO}",
            "10.0.0.1:\N{ARABIC-INDIC DIGIT ONE}\N{ARABIC-INDIC DIGIT TWO}",
        ],
    )
    def test_bad_port(self, authority):
        with pytest.raises(ParseError) as e:
            parse_authority(authority)
        assert str(e.value) == (
            f"Parse error: Could not parse port '{authority.partition(':')[2]}'"
            f" of backend '{authority}'."
        )

    @pytest.mark.parametrize("authority", ["", ":8080"])
    def test_missing_host(self, authority):
        with pytest.raises(ParseError, match="Missing host"):
            parse_authority(authority)


class TestAuthorityBackendSource:
    def test_returns_instance_per_backend(self):
        routing_config = RoutingConfig(hostname="example.com", backends=["10.0.0.1", "10.0.0.2:81"])
        assert list(AuthorityBackendSource().get_instances("app", routing_config)) == [
            AddInstance(data=Instance(app_id="app", ip_address="10.0.0.1", port=80)),
            AddInstance(data=Instance(app_id="app", ip_address="10.0.0.2", port=81)),
        ]

    def test_bad_backend_yields_nothing(self):
        routing_config = RoutingConfig(hostname="example.com", backends=["10.0.0.1", "bad:port"])
        with pytest.raises(ParseError):
            AuthorityBackendSource().get_instances("app", routing_config)
