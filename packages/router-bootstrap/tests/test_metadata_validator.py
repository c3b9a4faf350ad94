"""Tests for the metadata pre-flight checks and cluster discovery."""

import pytest

from fakes import script_preflight
from router_bootstrap.exceptions import (
    HealthError,
    MetadataError,
    MetadataShapeError,
    QuorumError,
    UnsupportedMetadataError,
)
from router_bootstrap.metadata import MetadataValidator, fetch_cluster_info, warn_on_no_ssl

SCHEMA = "SELECT * FROM mysql_innodb_cluster_metadata.schema_version"
SUPPORT = "SELECT  ((SELECT count(*) FROM mysql_innodb_cluster_metadata.clusters) <= 1  AND"
STATE = "SELECT member_state FROM performance_schema.replication_group_members WHERE member_id = @@server_uuid"
QUORUM = "SELECT SUM(IF(member_state = 'ONLINE', 1, 0)) as num_onlines, COUNT(*) as num_total"


# ===== Pre-flight Stage Tests =====


class TestMetadataValidator:
    """Tests for the ordered pre-flight stages."""

    def test_all_stages_pass(self, session):
        script_preflight(session)
        MetadataValidator(session).check()
        assert session.empty()

    def test_support_query_text(self, session):
        """The metadata support query is sent verbatim."""
        script_preflight(session)
        MetadataValidator(session).check()
        assert session.statements[1] == (
            "SELECT  ((SELECT count(*) FROM mysql_innodb_cluster_metadata.clusters) <= 1 "
            " AND (SELECT count(*) FROM mysql_innodb_cluster_metadata.replicasets) <= 1) "
            "as has_one_replicaset, (SELECT attributes->>'$.group_replication_group_name' "
            "FROM mysql_innodb_cluster_metadata.replicasets)  = @@group_replication_group_name "
            "as replicaset_is_ours"
        )

    @pytest.mark.parametrize("row", [("1", "0"), ("1", "0", "1")])
    def test_schema_version_two_or_three_fields(self, session, row):
        session.expect_query_one(SCHEMA).then_return([row])
        assert MetadataValidator(session).check_schema_version()[0] == 1

    @pytest.mark.parametrize("row", [("1",), ("1", "0", "1", "2")])
    def test_schema_version_wrong_shape(self, session, row):
        session.expect_query_one(SCHEMA).then_return([row])
        with pytest.raises(
            MetadataShapeError,
            match=f"expected 2 or 3 got {len(row)}",
        ):
            MetadataValidator(session).check()
        assert session.empty()

    def test_schema_version_unsupported_major(self, session):
        session.expect_query_one(SCHEMA).then_return([("2", "0", "0")])
        with pytest.raises(UnsupportedMetadataError, match="not compatible"):
            MetadataValidator(session).check()

    def test_no_result(self, session):
        session.expect_query_one(SCHEMA).then_return([])
        with pytest.raises(MetadataShapeError, match="No result returned for metadata query"):
            MetadataValidator(session).check()

    def test_transport_error(self, session):
        session.expect_query_one(SCHEMA).then_error("Table doesn't exist", code=1146)
        with pytest.raises(MetadataError, match="Table doesn't exist"):
            MetadataValidator(session).check()

    def test_support_wrong_shape(self, session):
        session.expect_query_one(SCHEMA).then_return([("1", "0")])
        session.expect_query_one(SUPPORT).then_return([("1",)])
        with pytest.raises(MetadataShapeError, match="for metadata support: expected 2 got 1"):
            MetadataValidator(session).check()

    def test_more_than_one_replicaset(self, session):
        session.expect_query_one(SCHEMA).then_return([("1", "0")])
        session.expect_query_one(SUPPORT).then_return([("0", "1")])
        with pytest.raises(UnsupportedMetadataError, match="more than one cluster or replicaset"):
            MetadataValidator(session).check()
        assert session.empty()

    @pytest.mark.parametrize("value", ["0", None])
    def test_replicaset_not_ours(self, session, value):
        session.expect_query_one(SCHEMA).then_return([("1", "0")])
        session.expect_query_one(SUPPORT).then_return([("1", value)])
        with pytest.raises(UnsupportedMetadataError, match="not the group"):
            MetadataValidator(session).check()

    def test_member_not_online(self, session):
        """Stages stop at the first failure; quorum is never queried."""
        session.expect_query_one(SCHEMA).then_return([("1", "0")])
        session.expect_query_one(SUPPORT).then_return([("1", "1")])
        session.expect_query_one(STATE).then_return([("RECOVERING",)])
        with pytest.raises(HealthError, match="not an ONLINE member") as exc_info:
            MetadataValidator(session).check()
        assert exc_info.value.state == "RECOVERING"
        assert session.empty()

    def test_member_state_missing(self, session):
        session.expect_query_one(SCHEMA).then_return([("1", "0")])
        session.expect_query_one(SUPPORT).then_return([("1", "1")])
        session.expect_query_one(STATE).then_return([])
        with pytest.raises(MetadataShapeError, match="No result returned for metadata query"):
            MetadataValidator(session).check()

    @pytest.mark.parametrize(
        "online,total,ok",
        [("3", "3", True), ("2", "3", True), ("3", "5", True), ("2", "4", False),
         ("1", "3", False), ("0", "0", False), (None, "0", False)],
    )
    def test_quorum(self, session, online, total, ok):
        script_preflight(session, online=online, total=total)
        validator = MetadataValidator(session)
        if ok:
            validator.check()
        else:
            with pytest.raises(QuorumError, match="quorum"):
                validator.check()

    def test_quorum_wrong_shape(self, session):
        session.expect_query_one(QUORUM).then_return([("3",)])
        with pytest.raises(
            MetadataShapeError,
            match="performance_schema.replication_group_members: expected 2 got 1",
        ):
            MetadataValidator(session).check_quorum()

    def test_quorum_error_attributes(self, session):
        session.expect_query_one(QUORUM).then_return([("1", "4")])
        with pytest.raises(QuorumError) as exc_info:
            MetadataValidator(session).check_quorum()
        assert exc_info.value.online == 1
        assert exc_info.value.total == 4


# ===== Cluster Discovery Tests =====

CLUSTER_QUERY = "SELECT F.cluster_name, R.replicaset_name, R.topology_type"


class TestFetchClusterInfo:
    """Tests for reading the cluster identity from metadata."""

    def test_single_master(self, session):
        session.expect_query(CLUSTER_QUERY).then_return([
            ("mycluster", "myreplicaset", "pm", "somehost:3306"),
            ("mycluster", "myreplicaset", "pm", "otherhost:3306"),
        ])
        info = fetch_cluster_info(session)

        assert info.cluster_name == "mycluster"
        assert info.replicaset_name == "myreplicaset"
        assert info.multi_master is False
        assert info.bootstrap_servers == "mysql://somehost:3306,mysql://otherhost:3306"

    def test_multi_master(self, session):
        session.expect_query(CLUSTER_QUERY).then_return([("c", "r", "mm", "h:1")])
        assert fetch_cluster_info(session).multi_master is True

    def test_unknown_topology(self, session):
        session.expect_query(CLUSTER_QUERY).then_return([("c", "r", "xx", "h:1")])
        with pytest.raises(UnsupportedMetadataError, match="Unknown topology type in metadata: xx"):
            fetch_cluster_info(session)

    def test_no_clusters(self, session):
        session.expect_query(CLUSTER_QUERY).then_return([])
        with pytest.raises(UnsupportedMetadataError, match="No clusters defined in metadata server"):
            fetch_cluster_info(session)

    def test_more_than_one_cluster(self, session):
        session.expect_query(CLUSTER_QUERY).then_return([
            ("c1", "r", "pm", "h:1"),
            ("c2", "r", "pm", "h:2"),
        ])
        with pytest.raises(UnsupportedMetadataError, match="more than one cluster"):
            fetch_cluster_info(session)

    def test_more_than_one_replicaset(self, session):
        session.expect_query(CLUSTER_QUERY).then_return([
            ("c", "r1", "pm", "h:1"),
            ("c", "r2", "pm", "h:2"),
        ])
        with pytest.raises(UnsupportedMetadataError, match="more than one replica-set"):
            fetch_cluster_info(session)


# ===== SSL Warning Tests =====

SSL_QUERY = "show status like 'ssl_cipher'"


class TestWarnOnNoSsl:
    """Tests for the unencrypted connection warning."""

    @pytest.mark.parametrize("mode", ["DISABLED", "REQUIRED", "verify_ca", "VERIFY_IDENTITY"])
    def test_other_modes_not_checked(self, session, mode):
        assert warn_on_no_ssl(session, mode) is True
        assert session.statements == []

    @pytest.mark.parametrize("mode", ["", "PREFERRED", "preferred"])
    def test_encrypted(self, session, mode):
        session.expect_query_one(SSL_QUERY).then_return([("ssl_cipher", "DHE-RSA-AES256-SHA")])
        assert warn_on_no_ssl(session, mode) is True

    @pytest.mark.parametrize("cipher", ["", None])
    def test_not_encrypted(self, session, cipher, caplog):
        session.expect_query_one(SSL_QUERY).then_return([("ssl_cipher", cipher)])
        assert warn_on_no_ssl(session) is False
        assert "does not have SSL configured" in caplog.text

    @pytest.mark.parametrize("rows", [[], [("ssl_cipher",)], [("foo", "bar")], [("ssl_cipher", "x", "y")]])
    def test_malformed(self, session, rows):
        session.expect_query_one(SSL_QUERY).then_return(rows)
        with pytest.raises(MetadataShapeError, match="ssl_cipher"):
            warn_on_no_ssl(session)

    def test_query_error(self, session):
        session.expect_query_one(SSL_QUERY).then_error("boom", code=1)
        with pytest.raises(MetadataError, match="boom"):
            warn_on_no_ssl(session)
