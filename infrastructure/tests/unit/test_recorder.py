"""
Unit tests for the resource recorder.

Tests cover:
- Record order and logical ids
- Output files and their shared values
- In-place WAF updates after attachment
- Single-save semantics
"""

import json

import pytest
import yaml

from infrastructure.builders import (
    CacheBuilder,
    DatabaseBuilder,
    MonitoringBuilder,
    StorageBuilder,
    WafBuilder,
    associate_with_load_balancer,
)
from infrastructure.config import (
    AURORA_POSTGRESQL,
    POSTGRESQL,
    WAF_REGIONAL,
    CacheConfig,
    DatabaseConfig,
    MonitoringConfig,
    StorageConfig,
    WafConfig,
)
from infrastructure.errors import RecorderError
from infrastructure.recorder import ResourceRecorder, ResourceType
from infrastructure.recorder.artifacts import APP_CONFIG, INFRA_SUMMARY, RAW_DUMP, README


@pytest.fixture
def database(backend, context, base, network):
    config = DatabaseConfig(
        **base, engine=POSTGRESQL, instance_class="db.t4g.small", database_name="appdb"
    )
    return DatabaseBuilder(backend, config, context, network=network).build()


@pytest.fixture
def cache(backend, context, base, network):
    config = CacheConfig(**base, node_type="cache.t4g.micro")
    return CacheBuilder(backend, config, context, network=network).build()


@pytest.fixture
def bucket(backend, context, base):
    return StorageBuilder(backend, StorageConfig(**base), context).build()


@pytest.fixture
def recorder(context, backend, network, database, cache, bucket, compute):
    recorder = ResourceRecorder(context, backend)
    recorder.record_network(network)
    recorder.record_storage(bucket)
    recorder.record_database(database)
    recorder.record_cache(cache)
    recorder.record_compute(compute)
    return recorder


# ============================================================================
# Recording
# ============================================================================


def test_records_keep_call_order(recorder):
    """Test that records are kept in the order they were recorded."""
    assert [record.resource_type for record in recorder.records] == [
        ResourceType.VPC,
        ResourceType.STORAGE,
        ResourceType.RDS,
        ResourceType.CACHE,
        ResourceType.COMPUTE,
    ]


def test_record_logical_ids(recorder):
    """Test logical ids built from the handle name and resource type."""
    ids = [record.resource_id for record in recorder.records]

    assert ids[0] == "AcmeDevelopmentVpcVPC"
    assert ids[2] == "AcmeDevelopmentDbRDS"
    assert ids[3] == "AcmeDevelopmentCacheElastiCache"


def test_record_reapplies_required_tags(context, backend, network):
    """Test that recording tags the resource with the default tags."""
    recorder = ResourceRecorder(context, backend)

    record = recorder.record_network(network)

    assert record.tags["Project"] == "acme"
    assert record.tags["CreatedBy"] == "cdk"
    assert backend.tags[network.name] == record.tags


def test_record_cluster_database_as_aurora(context, backend, base, network):
    """Test that a cluster handle is recorded as Aurora."""
    config = DatabaseConfig(
        **base,
        engine=AURORA_POSTGRESQL,
        instance_class="db.r6g.large",
        database_name="appdb",
        instance_count=2,
    )
    handle = DatabaseBuilder(backend, config, context, network=network).build()
    recorder = ResourceRecorder(context, backend)

    record = recorder.record_database(handle)

    assert record.resource_type == ResourceType.AURORA
    assert record.properties.instance_count == 2
    assert record.properties.reader_endpoint_address == handle.reader_endpoint_address


def test_single_node_cache_properties(recorder, cache):
    """Test that a single node is recorded with one shard and no replicas."""
    record = recorder.records[3]

    assert record.physical_id == cache.cluster_id
    assert record.properties.num_shards == 1
    assert record.properties.replicas_per_shard == 0


def test_records_tuple_is_a_snapshot(recorder, context, backend, base, compute):
    """Test that the records property cannot mutate the recorder."""
    snapshot = recorder.records
    monitoring = MonitoringBuilder(
        backend, MonitoringConfig(**base), context, compute=compute
    ).build()

    recorder.record_monitoring(monitoring)

    assert len(snapshot) == 5
    assert len(recorder.records) == 6


# ============================================================================
# Output files
# ============================================================================


def test_save_writes_all_files(recorder, tmp_path):
    """Test that all four files are written under the project directory."""
    paths = recorder.save_to_files(str(tmp_path))

    assert set(paths) == {APP_CONFIG, INFRA_SUMMARY, RAW_DUMP, README}
    assert paths[APP_CONFIG] == tmp_path / "acme" / "aws_resources.development.yml"
    assert paths[INFRA_SUMMARY] == tmp_path / "acme" / "infrastructure.development.yml"
    assert paths[RAW_DUMP] == tmp_path / "acme" / "acme-20240501T123000Z.json"
    assert paths[README] == tmp_path / "acme" / "README.md"
    for path in paths.values():
        assert path.exists()


def test_app_config_matches_database_record(recorder, database, tmp_path):
    """Test that every file agrees on the database endpoint."""
    paths = recorder.save_to_files(str(tmp_path))

    app_config = yaml.safe_load(paths[APP_CONFIG].read_text())
    summary = yaml.safe_load(paths[INFRA_SUMMARY].read_text())
    raw = json.loads(paths[RAW_DUMP].read_text())
    readme = paths[README].read_text()

    assert app_config["database"]["host"] == database.endpoint_address
    assert app_config["database"]["port"] == 5432
    assert app_config["database"]["name"] == "appdb"
    assert app_config["database"]["password"] is None
    assert summary["rds"]["endpointAddress"] == database.endpoint_address
    assert raw["resources"][2]["properties"]["endpointAddress"] == database.endpoint_address
    assert database.endpoint_address in readme


def test_app_config_sections(recorder, bucket, compute, tmp_path):
    """Test the storage, aws and application sections."""
    paths = recorder.save_to_files(str(tmp_path))
    app_config = yaml.safe_load(paths[APP_CONFIG].read_text())

    assert app_config["storage"] == {
        "bucket_name": bucket.bucket_name,
        "region": "us-east-1",
        "endpoint": "https://s3.us-east-1.amazonaws.com",
    }
    assert app_config["aws"] == {"region": "us-east-1", "account_id": "123456789012"}
    assert app_config["application"]["load_balancer_dns"] == compute.load_balancer.dns_name


def test_infra_summary_sections(recorder, compute, tmp_path):
    """Test that the summary groups records by category."""
    paths = recorder.save_to_files(str(tmp_path))
    summary = yaml.safe_load(paths[INFRA_SUMMARY].read_text())

    for section in ("vpc", "rds", "elasticache", "s3", "ecs", "load_balancer", "cloudwatch"):
        assert section in summary
    assert summary["load_balancer"]["dnsName"] == compute.load_balancer.dns_name
    assert "loadBalancerDns" not in summary["ecs"]
    assert compute.task_definition.log_group_name in summary["cloudwatch"]["logGroups"]


def test_app_config_empty_fields_without_database(context, backend, bucket, tmp_path):
    """Test that missing resources leave their fields empty."""
    recorder = ResourceRecorder(context, backend)
    recorder.record_storage(bucket)

    paths = recorder.save_to_files(str(tmp_path))
    app_config = yaml.safe_load(paths[APP_CONFIG].read_text())

    assert app_config["database"]["host"] is None
    assert app_config["application"]["load_balancer_dns"] is None


# ============================================================================
# Updates
# ============================================================================


def test_update_waf_replaces_record_in_place(recorder, backend, context, base, compute):
    """Test that an attached web ACL replaces its earlier record."""
    waf = WafBuilder(backend, WafConfig(**base, scope=WAF_REGIONAL), context).build()
    recorder.record_waf(waf)
    attached = associate_with_load_balancer(backend, waf, compute)

    record = recorder.update_waf(attached)

    assert len(recorder.records) == 6
    assert recorder.records[5] == record
    assert record.resource_type == ResourceType.WAF
    assert record.properties.associated_resource_arn == compute.load_balancer.load_balancer_arn


def test_update_waf_requires_earlier_record(recorder, backend, context, base):
    """Test that only a recorded web ACL can be updated."""
    waf = WafBuilder(backend, WafConfig(**base, scope=WAF_REGIONAL), context).build()

    with pytest.raises(RecorderError, match="was not recorded"):
        recorder.update_waf(waf)

    assert len(recorder.records) == 5


# ============================================================================
# Save semantics
# ============================================================================


def test_save_twice_raises(recorder, tmp_path):
    """Test that save_to_files runs only once."""
    recorder.save_to_files(str(tmp_path))

    with pytest.raises(RecorderError):
        recorder.save_to_files(str(tmp_path))


def test_save_can_be_retried_after_write_failure(recorder, tmp_path):
    """Test that a failed write leaves the recorder able to save again."""
    blocked = tmp_path / "blocked"
    blocked.write_text("")

    with pytest.raises(OSError):
        recorder.save_to_files(str(blocked))

    paths = recorder.save_to_files(str(tmp_path))

    assert paths[APP_CONFIG].exists()
    with pytest.raises(RecorderError):
        recorder.save_to_files(str(tmp_path))


def test_save_without_records_raises(context, tmp_path):
    """Test that an empty recorder refuses to save."""
    recorder = ResourceRecorder(context)

    with pytest.raises(RecorderError, match="No resources"):
        recorder.save_to_files(str(tmp_path))

    assert not (tmp_path / "acme").exists()


def test_record_after_save_raises(recorder, network, tmp_path):
    """Test that recording is closed once files are written."""
    recorder.save_to_files(str(tmp_path))

    with pytest.raises(RecorderError):
        recorder.record_network(network)
