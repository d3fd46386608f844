"""
Read deployed stacks back through boto3.

Required calls (stack resources, outputs, caller identity, database and
secret lookups) raise ExternalProvisioningError. Per-resource detail fetches
are best effort: a failure is logged, emitted as a PartialRecordWarning and
stored on that resource as ``error``.
"""

import json
import logging
import os
import warnings
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import boto3
import yaml
from botocore.exceptions import BotoCoreError, ClientError

from infrastructure.context import DEFAULT_REGION
from infrastructure.errors import (
    ExternalProvisioningError,
    PartialRecordWarning,
    ResourceNotFoundError,
)

logger = logging.getLogger(__name__)

# CloudFormation resource types
VPC = "AWS::EC2::VPC"
SUBNET = "AWS::EC2::Subnet"
DB_INSTANCE = "AWS::RDS::DBInstance"
DB_CLUSTER = "AWS::RDS::DBCluster"
DB_SECRET = "AWS::SecretsManager::Secret"
BUCKET = "AWS::S3::Bucket"
ECS_CLUSTER = "AWS::ECS::Cluster"
ECS_SERVICE = "AWS::ECS::Service"
TASK_DEFINITION = "AWS::ECS::TaskDefinition"
LOG_GROUP = "AWS::Logs::LogGroup"
LOAD_BALANCER = "AWS::ElasticLoadBalancingV2::LoadBalancer"
TARGET_GROUP = "AWS::ElasticLoadBalancingV2::TargetGroup"
CACHE_CLUSTER = "AWS::ElastiCache::CacheCluster"
REPLICATION_GROUP = "AWS::ElastiCache::ReplicationGroup"
DISTRIBUTION = "AWS::CloudFront::Distribution"
WEB_ACL = "AWS::WAFv2::WebACL"


def default_region() -> str:
    return os.getenv("CDK_DEFAULT_REGION") or os.getenv("AWS_REGION") or DEFAULT_REGION


def aws_client(service: str, region: str):
    return boto3.client(service, region_name=region)


def call_aws(description: str, func: Callable[..., Dict[str, Any]], **kwargs) -> Dict[str, Any]:
    """
    Call a boto3 client method, wrapping AWS errors.

    Raises:
        ExternalProvisioningError: If the call fails
    """
    try:
        return func(**kwargs)
    except (ClientError, BotoCoreError) as e:
        raise ExternalProvisioningError(f"Failed to {description}: {e}") from e


# ============================================================================
# Stack lookups
# ============================================================================


def get_stack_resources(cloudformation, stack_name: str) -> List[Dict[str, Any]]:
    response = call_aws(
        f"list resources of stack {stack_name}",
        cloudformation.describe_stack_resources,
        StackName=stack_name,
    )
    return response.get("StackResources", [])


def get_stack_outputs(cloudformation, stack_name: str) -> Dict[str, str]:
    response = call_aws(
        f"describe stack {stack_name}",
        cloudformation.describe_stacks,
        StackName=stack_name,
    )
    stacks = response.get("Stacks", [])
    if not stacks:
        raise ExternalProvisioningError(f"Stack {stack_name} not found")
    return {
        output["OutputKey"]: output["OutputValue"]
        for output in stacks[0].get("Outputs", [])
    }


def get_account_id(sts) -> str:
    return call_aws("get caller identity", sts.get_caller_identity)["Account"]


def find_resource(
    resources: List[Dict[str, Any]], *resource_types: str
) -> Optional[Dict[str, Any]]:
    """Return the first stack resource of one of the given types."""
    for resource in resources:
        if resource["ResourceType"] in resource_types:
            return resource
    return None


def first_item(response: Dict[str, Any], key: str, what: str) -> Dict[str, Any]:
    """
    Return the single item of a describe response.

    Some describe calls (ECS among them) answer an unknown identifier with an
    empty list and a ``failures`` entry instead of an error.

    Raises:
        ResourceNotFoundError: If the list is empty or failures are reported
    """
    items = response.get(key) or []
    failures = response.get("failures") or []
    if failures or not items:
        reasons = ", ".join(str(failure.get("reason")) for failure in failures) or "no match"
        raise ResourceNotFoundError(f"{what} not found ({reasons})")
    return items[0]


# ============================================================================
# Per-type detail fetches
# ============================================================================


def _vpc_details(region: str, vpc_id: str) -> Dict[str, Any]:
    ec2 = aws_client("ec2", region)
    vpc = first_item(ec2.describe_vpcs(VpcIds=[vpc_id]), "Vpcs", f"VPC {vpc_id}")
    subnets = ec2.describe_subnets(Filters=[{"Name": "vpc-id", "Values": [vpc_id]}])["Subnets"]
    return {
        "vpcId": vpc["VpcId"],
        "cidr": vpc.get("CidrBlock"),
        "state": vpc.get("State"),
        "subnets": [
            {
                "subnetId": subnet["SubnetId"],
                "availabilityZone": subnet.get("AvailabilityZone"),
                "cidr": subnet.get("CidrBlock"),
                "public": subnet.get("MapPublicIpOnLaunch", False),
            }
            for subnet in subnets
        ],
    }


def _db_instance_details(region: str, identifier: str) -> Dict[str, Any]:
    rds = aws_client("rds", region)
    instance = first_item(
        rds.describe_db_instances(DBInstanceIdentifier=identifier),
        "DBInstances",
        f"database instance {identifier}",
    )
    return {
        "identifier": instance["DBInstanceIdentifier"],
        "endpointAddress": instance.get("Endpoint", {}).get("Address"),
        "port": instance.get("Endpoint", {}).get("Port"),
        "engine": instance.get("Engine"),
        "engineVersion": instance.get("EngineVersion"),
        "instanceClass": instance.get("DBInstanceClass"),
        "multiAz": instance.get("MultiAZ"),
        "status": instance.get("DBInstanceStatus"),
    }


def _db_cluster_details(region: str, identifier: str) -> Dict[str, Any]:
    rds = aws_client("rds", region)
    cluster = first_item(
        rds.describe_db_clusters(DBClusterIdentifier=identifier),
        "DBClusters",
        f"database cluster {identifier}",
    )
    return {
        "identifier": cluster["DBClusterIdentifier"],
        "endpointAddress": cluster.get("Endpoint"),
        "readerEndpointAddress": cluster.get("ReaderEndpoint"),
        "port": cluster.get("Port"),
        "engine": cluster.get("Engine"),
        "engineVersion": cluster.get("EngineVersion"),
        "instanceCount": len(cluster.get("DBClusterMembers", [])),
        "status": cluster.get("Status"),
    }


def _bucket_details(region: str, bucket_name: str) -> Dict[str, Any]:
    s3 = aws_client("s3", region)
    location = s3.get_bucket_location(Bucket=bucket_name).get("LocationConstraint")
    return {
        "bucketName": bucket_name,
        # us-east-1 buckets report no location constraint
        "region": location or "us-east-1",
    }


def _ecs_cluster_details(region: str, cluster_name: str) -> Dict[str, Any]:
    ecs = aws_client("ecs", region)
    cluster = first_item(
        ecs.describe_clusters(clusters=[cluster_name]), "clusters", f"ECS cluster {cluster_name}"
    )
    return {
        "clusterName": cluster["clusterName"],
        "clusterArn": cluster["clusterArn"],
        "status": cluster.get("status"),
        "runningTasksCount": cluster.get("runningTasksCount"),
        "activeServicesCount": cluster.get("activeServicesCount"),
    }


def _cache_cluster_details(region: str, cluster_id: str) -> Dict[str, Any]:
    elasticache = aws_client("elasticache", region)
    cluster = first_item(
        elasticache.describe_cache_clusters(CacheClusterId=cluster_id, ShowCacheNodeInfo=True),
        "CacheClusters",
        f"cache cluster {cluster_id}",
    )
    nodes = cluster.get("CacheNodes", [])
    endpoint = nodes[0].get("Endpoint", {}) if nodes else {}
    return {
        "cacheId": cluster["CacheClusterId"],
        "endpointAddress": endpoint.get("Address"),
        "port": endpoint.get("Port"),
        "nodeType": cluster.get("CacheNodeType"),
        "engineVersion": cluster.get("EngineVersion"),
        "status": cluster.get("CacheClusterStatus"),
    }


def _replication_group_details(region: str, group_id: str) -> Dict[str, Any]:
    elasticache = aws_client("elasticache", region)
    group = first_item(
        elasticache.describe_replication_groups(ReplicationGroupId=group_id),
        "ReplicationGroups",
        f"replication group {group_id}",
    )
    endpoint = group.get("ConfigurationEndpoint")
    if endpoint is None and group.get("NodeGroups"):
        endpoint = group["NodeGroups"][0].get("PrimaryEndpoint")
    endpoint = endpoint or {}
    return {
        "cacheId": group["ReplicationGroupId"],
        "endpointAddress": endpoint.get("Address"),
        "port": endpoint.get("Port"),
        "numShards": len(group.get("NodeGroups", [])),
        "automaticFailover": group.get("AutomaticFailover"),
        "multiAz": group.get("MultiAZ"),
        "clusterModeEnabled": group.get("ClusterEnabled"),
        "status": group.get("Status"),
    }


DETAIL_FETCHERS: Dict[str, Callable[[str, str], Dict[str, Any]]] = {
    VPC: _vpc_details,
    DB_INSTANCE: _db_instance_details,
    DB_CLUSTER: _db_cluster_details,
    BUCKET: _bucket_details,
    ECS_CLUSTER: _ecs_cluster_details,
    CACHE_CLUSTER: _cache_cluster_details,
    REPLICATION_GROUP: _replication_group_details,
}


def fetch_details(region: str, resource_type: str, physical_id: str) -> Optional[Dict[str, Any]]:
    """
    Fetch live details for one stack resource.

    Returns None for resource types without a detail fetcher.

    Raises:
        ClientError, BotoCoreError: If the AWS call fails
        ResourceNotFoundError: If AWS reports no such resource
    """
    fetcher = DETAIL_FETCHERS.get(resource_type)
    if fetcher is None:
        return None
    return fetcher(region, physical_id)


# ============================================================================
# Collection
# ============================================================================


def collect_resource_info(
    *,
    project_name: str,
    stack_name: str,
    environment: str,
    region: str,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Collect every resource of a deployed stack with its live details.

    Args:
        project_name: Project name
        stack_name: CloudFormation stack name
        environment: Environment name
        region: AWS region
        timestamp: Collection time (default: now, UTC)

    Returns:
        Resource info document

    Raises:
        ExternalProvisioningError: If the stack cannot be read
    """
    timestamp = timestamp or datetime.now(timezone.utc)
    cloudformation = aws_client("cloudformation", region)
    stack_resources = get_stack_resources(cloudformation, stack_name)
    outputs = get_stack_outputs(cloudformation, stack_name)

    resources = []
    for stack_resource in stack_resources:
        resource_type = stack_resource["ResourceType"]
        physical_id = stack_resource.get("PhysicalResourceId")
        entry: Dict[str, Any] = {
            "resourceType": resource_type,
            "logicalId": stack_resource["LogicalResourceId"],
            "physicalId": physical_id,
            "status": stack_resource.get("ResourceStatus"),
        }

        if resource_type in DETAIL_FETCHERS and physical_id:
            try:
                entry["details"] = fetch_details(region, resource_type, physical_id)
            except (ClientError, BotoCoreError, ResourceNotFoundError) as e:
                message = f"Could not fetch details for {resource_type} {physical_id}: {e}"
                logger.warning(message)
                warnings.warn(message, PartialRecordWarning)
                entry["error"] = str(e)

        resources.append(entry)

    logger.info(f"Collected {len(resources)} resources from stack {stack_name}")
    return {
        "projectName": project_name,
        "stackName": stack_name,
        "environment": environment,
        "region": region,
        "timestamp": timestamp.isoformat(),
        "outputs": outputs,
        "resources": resources,
    }


def _first_physical_id(info: Dict[str, Any], *resource_types: str) -> Optional[str]:
    for resource in info["resources"]:
        if resource["resourceType"] in resource_types:
            return resource["physicalId"]
    return None


def build_config_document(info: Dict[str, Any]) -> Dict[str, Any]:
    """Condensed configuration view of a resource info document."""
    outputs = info["outputs"]
    database_type = None
    for resource in info["resources"]:
        if resource["resourceType"] == DB_INSTANCE:
            database_type = "rds"
            break
        if resource["resourceType"] == DB_CLUSTER:
            database_type = "aurora"
            break

    return {
        "environment": info["environment"],
        "region": info["region"],
        "vpc": _first_physical_id(info, VPC),
        "database": {
            "type": database_type,
            "endpoint": outputs.get("DatabaseEndpoint"),
            "port": outputs.get("DatabasePort"),
        },
        "cache": {
            "endpoint": outputs.get("CacheEndpoint"),
        },
        "s3": {
            "bucket_name": _first_physical_id(info, BUCKET),
        },
        "ecs": {
            "cluster_name": _first_physical_id(info, ECS_CLUSTER),
            "service_arn": _first_physical_id(info, ECS_SERVICE),
            "load_balancer_dns": outputs.get("LoadBalancerDNS"),
        },
        "cloudfront": {
            "distribution_id": _first_physical_id(info, DISTRIBUTION),
            "domain_name": outputs.get("CloudFrontDomainName"),
        },
        "waf": {
            "web_acl_arn": outputs.get("WebAclArn"),
        },
    }


def save_resource_info(info: Dict[str, Any], output_dir: str) -> Dict[str, Path]:
    """
    Write ``resources-{timestamp}.json`` and ``config.yml``.

    Both documents are rendered before either file is written.

    Returns:
        Mapping of "json" and "yaml" to the written paths
    """
    json_content = json.dumps(info, indent=2, default=str)
    yaml_content = yaml.safe_dump(build_config_document(info), sort_keys=False)

    directory = Path(output_dir) / info["stackName"]
    directory.mkdir(parents=True, exist_ok=True)

    stamp = info["timestamp"].replace(":", "-").replace(".", "-")
    paths = {
        "json": directory / f"resources-{stamp}.json",
        "yaml": directory / "config.yml",
    }
    paths["json"].write_text(json_content)
    paths["yaml"].write_text(yaml_content)
    return paths
