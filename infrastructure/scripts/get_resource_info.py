#!/usr/bin/env python3
"""
Collect resource information for a deployed stack.

Lists every stack resource, fetches live details for VPCs, databases,
buckets, ECS clusters and caches, and writes a JSON dump plus a condensed
config.yml under {output-dir}/{stack}/.

Usage:
    get-resource-info --project webapp --stack webapp-production \\
        --region ap-northeast-1 --environment production
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from infrastructure.config import ENVIRONMENTS
from infrastructure.errors import InfrastructureError
from infrastructure.scripts.resource_info import (
    collect_resource_info,
    default_region,
    save_resource_info,
)


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Collect deployed stack resource information")
    parser.add_argument("--project", required=True, help="Project name")
    parser.add_argument("--stack", required=True, help="CloudFormation stack name")
    parser.add_argument("--region", default=None, help="AWS region")
    parser.add_argument(
        "--environment", required=True, choices=list(ENVIRONMENTS), help="Environment"
    )
    parser.add_argument(
        "--output-dir",
        default="resource-info",
        help="Output base directory (default: resource-info)",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

    region = args.region or default_region()
    print(f"🔍 Collecting resources of {args.stack} in {region}")

    try:
        info = collect_resource_info(
            project_name=args.project,
            stack_name=args.stack,
            environment=args.environment,
            region=region,
        )
        paths = save_resource_info(info, args.output_dir)
    except InfrastructureError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    failed = [resource for resource in info["resources"] if "error" in resource]
    print(f"📊 Resources: {len(info['resources'])} (details unavailable: {len(failed)})")
    for path in paths.values():
        print(f"✅ Wrote {path}")
    sys.exit(0)


if __name__ == "__main__":
    main()
