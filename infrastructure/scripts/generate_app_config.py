#!/usr/bin/env python3
"""
Generate the application config file from a deployed stack.

Reads the stack through CloudFormation, RDS, Secrets Manager and STS and
writes projects/{project}/aws_resources.{environment}.yml with the same
layout the CDK app writes at synthesis, including the database password.

Usage:
    generate-app-config --project webapp
    generate-app-config --project webapp --environment production --region us-east-1
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from infrastructure.config import DEVELOPMENT, ENVIRONMENTS
from infrastructure.errors import ExternalProvisioningError, InfrastructureError
from infrastructure.recorder.artifacts import app_config_filename, build_app_config, dump_yaml
from infrastructure.recorder.records import (
    ComputeProperties,
    DatabaseProperties,
    ResourceRecord,
    ResourceType,
    StorageProperties,
)
from infrastructure.scripts.resource_info import (
    BUCKET,
    DB_CLUSTER,
    DB_INSTANCE,
    DB_SECRET,
    ECS_CLUSTER,
    ECS_SERVICE,
    LOAD_BALANCER,
    LOG_GROUP,
    TARGET_GROUP,
    TASK_DEFINITION,
    aws_client,
    call_aws,
    default_region,
    find_resource,
    first_item,
    get_account_id,
    get_stack_outputs,
    get_stack_resources,
)

logger = logging.getLogger(__name__)


def _physical_id(resource: Optional[Dict[str, Any]]) -> Optional[str]:
    return resource["PhysicalResourceId"] if resource else None


def get_secret(secretsmanager, secret_arn: str) -> Dict[str, Any]:
    response = call_aws(
        "read database secret", secretsmanager.get_secret_value, SecretId=secret_arn
    )
    return json.loads(response["SecretString"])


def database_record(
    region: str, resource: Dict[str, Any], secret: Dict[str, Any]
) -> ResourceRecord:
    """Build a database record from the live instance or cluster."""
    rds = aws_client("rds", region)
    identifier = resource["PhysicalResourceId"]

    if resource["ResourceType"] == DB_CLUSTER:
        cluster = first_item(
            call_aws(
                f"describe database cluster {identifier}",
                rds.describe_db_clusters,
                DBClusterIdentifier=identifier,
            ),
            "DBClusters",
            f"database cluster {identifier}",
        )
        resource_type = ResourceType.AURORA
        properties = DatabaseProperties(
            identifier=identifier,
            endpoint_address=cluster["Endpoint"],
            reader_endpoint_address=cluster.get("ReaderEndpoint"),
            port=cluster["Port"],
            engine=cluster["Engine"],
            engine_version=cluster.get("EngineVersion"),
            database_name=cluster.get("DatabaseName") or secret.get("dbname"),
            username=secret.get("username"),
            password=secret.get("password"),
            instance_count=len(cluster.get("DBClusterMembers", [])),
        )
    else:
        instance = first_item(
            call_aws(
                f"describe database instance {identifier}",
                rds.describe_db_instances,
                DBInstanceIdentifier=identifier,
            ),
            "DBInstances",
            f"database instance {identifier}",
        )
        resource_type = ResourceType.RDS
        properties = DatabaseProperties(
            identifier=identifier,
            endpoint_address=instance["Endpoint"]["Address"],
            port=instance["Endpoint"]["Port"],
            engine=instance["Engine"],
            engine_version=instance.get("EngineVersion"),
            database_name=instance.get("DBName") or secret.get("dbname"),
            username=secret.get("username"),
            password=secret.get("password"),
            instance_class=instance.get("DBInstanceClass"),
            multi_az=instance.get("MultiAZ"),
        )

    return ResourceRecord(
        resource_type=resource_type,
        resource_id=resource["LogicalResourceId"],
        physical_id=identifier,
        properties=properties,
    )


def compute_record(
    resources: List[Dict[str, Any]], outputs: Dict[str, str]
) -> Optional[ResourceRecord]:
    service = find_resource(resources, ECS_SERVICE)
    if service is None:
        return None

    service_arn = service["PhysicalResourceId"]
    properties = ComputeProperties(
        cluster_name=_physical_id(find_resource(resources, ECS_CLUSTER)),
        cluster_arn=None,
        service_name=service_arn.split("/")[-1],
        service_arn=service_arn,
        task_definition_arn=_physical_id(find_resource(resources, TASK_DEFINITION)),
        container_name=None,
        cpu=None,
        memory=None,
        desired_count=None,
        min_capacity=None,
        max_capacity=None,
        scaling_policies=[],
        load_balancer_arn=_physical_id(find_resource(resources, LOAD_BALANCER)),
        load_balancer_dns=outputs.get("LoadBalancerDNS"),
        target_group_arn=_physical_id(find_resource(resources, TARGET_GROUP)),
        health_check_path=None,
        listener_port=None,
        log_group_name=_physical_id(find_resource(resources, LOG_GROUP)),
    )
    return ResourceRecord(
        resource_type=ResourceType.COMPUTE,
        resource_id=service["LogicalResourceId"],
        physical_id=service_arn,
        properties=properties,
    )


def collect_app_config(
    *, project_name: str, environment: str, stack_name: str, region: str
) -> Dict[str, Any]:
    """
    Build the application config document from a deployed stack.

    Raises:
        ExternalProvisioningError: If the stack, database or secret cannot be read
    """
    cloudformation = aws_client("cloudformation", region)
    resources = get_stack_resources(cloudformation, stack_name)
    outputs = get_stack_outputs(cloudformation, stack_name)
    account_id = get_account_id(aws_client("sts", region))

    records: List[ResourceRecord] = []

    database = find_resource(resources, DB_INSTANCE, DB_CLUSTER)
    if database is None:
        raise ExternalProvisioningError(f"No database found in stack {stack_name}")
    secret = find_resource(resources, DB_SECRET)
    if secret is None:
        raise ExternalProvisioningError(f"No database secret found in stack {stack_name}")
    records.append(
        database_record(
            region,
            database,
            get_secret(aws_client("secretsmanager", region), secret["PhysicalResourceId"]),
        )
    )

    bucket = find_resource(resources, BUCKET)
    if bucket is not None:
        # The CDN log bucket is also an S3 bucket; the output names the app bucket
        bucket_name = outputs.get("BucketName") or bucket["PhysicalResourceId"]
        records.append(
            ResourceRecord(
                resource_type=ResourceType.STORAGE,
                resource_id=bucket["LogicalResourceId"],
                physical_id=bucket_name,
                properties=StorageProperties(bucket_name=bucket_name),
            )
        )

    compute = compute_record(resources, outputs)
    if compute is not None:
        records.append(compute)

    logger.info(f"Read {len(records)} resources from stack {stack_name}")

    return build_app_config(
        records,
        project_name=project_name,
        environment=environment,
        region=region,
        account_id=account_id,
    )


def write_app_config(
    document: Dict[str, Any], *, project_name: str, environment: str, output_dir: str
) -> Path:
    content = dump_yaml(document)
    directory = Path(output_dir) / project_name
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / app_config_filename(environment)
    path.write_text(content)
    return path


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate aws_resources.{environment}.yml from a deployed stack"
    )
    parser.add_argument("--project", required=True, help="Project name")
    parser.add_argument(
        "--environment",
        default=DEVELOPMENT,
        choices=list(ENVIRONMENTS),
        help="Environment (default: development)",
    )
    parser.add_argument(
        "--stack", help="CloudFormation stack name (default: {project}-{environment})"
    )
    parser.add_argument("--region", help="AWS region (default: CDK_DEFAULT_REGION or AWS_REGION)")
    parser.add_argument(
        "--output-dir", default="projects", help="Output base directory (default: projects)"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

    stack_name = args.stack or f"{args.project}-{args.environment}"
    region = args.region or default_region()

    print(f"📖 Reading stack {stack_name} in {region}")

    try:
        document = collect_app_config(
            project_name=args.project,
            environment=args.environment,
            stack_name=stack_name,
            region=region,
        )
        path = write_app_config(
            document,
            project_name=args.project,
            environment=args.environment,
            output_dir=args.output_dir,
        )
    except InfrastructureError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"✅ Wrote {path}")
    sys.exit(0)


if __name__ == "__main__":
    main()
