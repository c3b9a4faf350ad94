"""Tests that the concrete implementations satisfy the protocols."""

import pytest

from router_protocols import MetadataSessionProtocol, PlatformOpsProtocol, RandomGeneratorProtocol, SessionError
from router_bootstrap.generators import RandomGenerator
from router_bootstrap.platform import PosixPlatformOps
from router_bootstrap.session import MySQLSession, quote

from fakes import FakeRandomGenerator, SessionReplayer


class TestProtocolCompliance:
    def test_mysql_session(self):
        assert isinstance(MySQLSession(), MetadataSessionProtocol)

    def test_session_replayer(self):
        assert isinstance(SessionReplayer(), MetadataSessionProtocol)

    def test_random_generators(self):
        assert isinstance(RandomGenerator(), RandomGeneratorProtocol)
        assert isinstance(FakeRandomGenerator(), RandomGeneratorProtocol)

    def test_platform_ops(self):
        assert isinstance(PosixPlatformOps(), PlatformOpsProtocol)

    def test_session_error(self):
        error = SessionError(1524, "plugin not loaded")
        assert error.code == 1524
        assert str(error) == "plugin not loaded"


class TestRandomGenerator:
    def test_identifier(self):
        value = RandomGenerator().generate_identifier(12)
        assert len(value) == 12
        assert value.isalnum()

    def test_strong_password(self):
        value = RandomGenerator().generate_strong_password(16)
        assert len(value) == 16
        assert any(c.islower() for c in value)
        assert any(c.isupper() for c in value)
        assert any(c.isdigit() for c in value)
        assert any(not c.isalnum() for c in value)


class TestMySQLSession:
    def test_quote(self):
        assert quote("plain") == "'plain'"
        assert quote("it's") == "'it\\'s'"
        assert quote("back\\slash") == "'back\\\\slash'"

    def test_query_without_connection(self):
        with pytest.raises(SessionError, match="Not connected"):
            MySQLSession().query("SELECT 1")

    def test_disabled_ssl_args(self):
        session = MySQLSession()
        session.set_ssl_options(mode="disabled")
        assert session._connect_args() == {"ssl_disabled": True}

    def test_verify_identity_args(self):
        session = MySQLSession()
        session.set_ssl_options(mode="VERIFY_IDENTITY", ca="/ca.pem", tls_version="TLSv1.2,TLSv1.3")
        args = session._connect_args()
        assert args["ssl_ca"] == "/ca.pem"
        assert args["ssl_verify_cert"] is True
        assert args["ssl_verify_identity"] is True
        assert args["tls_versions"] == ["TLSv1.2", "TLSv1.3"]
