"""
Output artifacts derived from recorded resources.

Each artifact has one projection function over the same record sequence:

- application config (YAML) for the web backend
- infrastructure summary (YAML) grouped by category
- raw record dump (JSON)
- human-readable summary (Markdown)
"""

import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import yaml

from infrastructure.recorder.records import (
    LOAD_BALANCER_FIELDS,
    ResourceRecord,
    ResourceType,
    properties_to_dict,
)

APP_CONFIG = "app_config"
INFRA_SUMMARY = "infra_summary"
RAW_DUMP = "raw_dump"
README = "readme"

SUMMARY_SECTIONS = {
    ResourceType.VPC: "vpc",
    ResourceType.RDS: "rds",
    ResourceType.AURORA: "rds",
    ResourceType.CACHE: "elasticache",
    ResourceType.STORAGE: "s3",
    ResourceType.COMPUTE: "ecs",
    ResourceType.CDN: "cloudfront",
    ResourceType.WAF: "waf",
}


def first_record(
    records: Iterable[ResourceRecord], *resource_types: ResourceType
) -> Optional[ResourceRecord]:
    for record in records:
        if record.resource_type in resource_types:
            return record
    return None


def s3_endpoint(region: str) -> str:
    return f"https://s3.{region}.amazonaws.com"


def app_config_filename(environment: str) -> str:
    return f"aws_resources.{environment}.yml"


def infra_summary_filename(environment: str) -> str:
    return f"infrastructure.{environment}.yml"


def raw_dump_filename(project_name: str, timestamp: datetime) -> str:
    return f"{project_name}-{timestamp.strftime('%Y%m%dT%H%M%SZ')}.json"


def build_app_config(
    records: Sequence[ResourceRecord],
    *,
    project_name: str,
    environment: str,
    region: str,
    account_id: Optional[str],
) -> Dict[str, Any]:
    """
    Application-facing configuration.

    Uses the first database (RDS or Aurora), storage and compute records.
    Missing resources leave their fields empty.
    """
    database = first_record(records, ResourceType.RDS, ResourceType.AURORA)
    storage = first_record(records, ResourceType.STORAGE)
    compute = first_record(records, ResourceType.COMPUTE)

    db = database.properties if database else None
    return {
        "database": {
            "host": db.endpoint_address if db else None,
            "port": db.port if db else None,
            "name": db.database_name if db else None,
            "username": db.username if db else None,
            "password": db.password if db else None,
        },
        "storage": {
            "bucket_name": storage.properties.bucket_name if storage else None,
            "region": region,
            "endpoint": s3_endpoint(region),
        },
        "aws": {
            "region": region,
            "account_id": account_id,
        },
        "application": {
            "name": project_name,
            "environment": environment,
            "load_balancer_dns": compute.properties.load_balancer_dns if compute else None,
        },
    }


def build_infra_summary(
    records: Sequence[ResourceRecord],
    *,
    project_name: str,
    environment: str,
    region: str,
    account_id: Optional[str],
    timestamp: datetime,
) -> Dict[str, Any]:
    """
    Every recorded resource's properties grouped by category.

    A category with one resource maps to its properties; a category with
    several maps to a list in record order. CloudWatch log groups and alarms
    from all resources are merged into a single ``cloudwatch`` section.
    """
    sections: Dict[str, List[Dict[str, Any]]] = {}
    cloudwatch: Dict[str, Any] = {"logGroups": []}

    def add(section: str, properties: Dict[str, Any]) -> None:
        sections.setdefault(section, []).append(properties)

    for record in records:
        properties = properties_to_dict(record.properties)

        if record.resource_type == ResourceType.MONITORING:
            cloudwatch["alarmTopicArn"] = properties["alarmTopicArn"]
            cloudwatch.setdefault("alarmNames", []).extend(properties["alarmNames"])
            continue

        if record.resource_type == ResourceType.COMPUTE:
            add(
                "load_balancer",
                {LOAD_BALANCER_FIELDS[key]: properties[key] for key in LOAD_BALANCER_FIELDS},
            )
            cloudwatch["logGroups"].append(properties["logGroupName"])
            properties = {
                key: value
                for key, value in properties.items()
                if key not in LOAD_BALANCER_FIELDS
            }
        elif record.resource_type == ResourceType.VPC and properties.get("flowLogGroup"):
            cloudwatch["logGroups"].append(properties["flowLogGroup"])

        add(SUMMARY_SECTIONS[record.resource_type], dict(properties, resourceId=record.resource_id))

    summary: Dict[str, Any] = {
        "project": project_name,
        "environment": environment,
        "region": region,
        "account_id": account_id,
        "generated_at": timestamp.isoformat(),
    }
    for section, entries in sections.items():
        summary[section] = entries[0] if len(entries) == 1 else entries
    summary["cloudwatch"] = cloudwatch
    return summary


def build_raw_dump(
    records: Sequence[ResourceRecord], *, project_name: str, timestamp: datetime
) -> Dict[str, Any]:
    return {
        "projectName": project_name,
        "timestamp": timestamp.isoformat(),
        "resources": [record.to_dict() for record in records],
    }


def _display(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, (dict, list)):
        return f"`{json.dumps(value, sort_keys=True)}`"
    return f"`{value}`"


def render_readme(
    app_config: Dict[str, Any],
    records: Sequence[ResourceRecord],
    *,
    filenames: Dict[str, str],
    timestamp: datetime,
) -> str:
    """Markdown summary built from the application config values."""
    application = app_config["application"]
    database = app_config["database"]

    lines = [
        f"# {application['name']} infrastructure ({application['environment']})",
        "",
        f"Generated: {timestamp.isoformat()}",
        "",
        "## Endpoints",
        "",
        "| Setting | Value |",
        "| --- | --- |",
        f"| Database host | {_display(database['host'])} |",
        f"| Database port | {_display(database['port'])} |",
        f"| Database name | {_display(database['name'])} |",
        f"| Storage bucket | {_display(app_config['storage']['bucket_name'])} |",
        f"| Load balancer DNS | {_display(application['load_balancer_dns'])} |",
        f"| Region | {_display(app_config['aws']['region'])} |",
        "",
        "## Resources",
        "",
    ]
    for record in records:
        lines.append(
            f"- {record.resource_type.value} `{record.resource_id}`: {_display(record.physical_id)}"
        )

    lines += [
        "",
        "## Output files",
        "",
        f"- `{filenames[APP_CONFIG]}`: application configuration",
        f"- `{filenames[INFRA_SUMMARY]}`: infrastructure summary by category",
        f"- `{filenames[RAW_DUMP]}`: raw resource records",
        f"- `{filenames[README]}`: this summary",
        "",
    ]
    return "\n".join(lines)


class _NoAliasDumper(yaml.SafeDumper):
    """Safe dumper that writes repeated values out instead of as aliases."""

    def ignore_aliases(self, data):
        return True


def dump_yaml(document: Dict[str, Any]) -> str:
    return yaml.dump(
        document, Dumper=_NoAliasDumper, sort_keys=False, default_flow_style=False
    )


def render_artifacts(
    records: Sequence[ResourceRecord],
    *,
    project_name: str,
    environment: str,
    region: str,
    account_id: Optional[str],
    timestamp: datetime,
) -> Dict[str, Tuple[str, str]]:
    """
    Render every artifact from one record snapshot.

    Returns:
        Mapping of artifact key to (filename, content)
    """
    filenames = {
        APP_CONFIG: app_config_filename(environment),
        INFRA_SUMMARY: infra_summary_filename(environment),
        RAW_DUMP: raw_dump_filename(project_name, timestamp),
        README: "README.md",
    }

    app_config = build_app_config(
        records,
        project_name=project_name,
        environment=environment,
        region=region,
        account_id=account_id,
    )
    infra_summary = build_infra_summary(
        records,
        project_name=project_name,
        environment=environment,
        region=region,
        account_id=account_id,
        timestamp=timestamp,
    )
    raw_dump = build_raw_dump(records, project_name=project_name, timestamp=timestamp)

    return {
        APP_CONFIG: (filenames[APP_CONFIG], dump_yaml(app_config)),
        INFRA_SUMMARY: (filenames[INFRA_SUMMARY], dump_yaml(infra_summary)),
        RAW_DUMP: (filenames[RAW_DUMP], json.dumps(raw_dump, indent=2, default=str)),
        README: (
            filenames[README],
            render_readme(app_config, records, filenames=filenames, timestamp=timestamp),
        ),
    }
