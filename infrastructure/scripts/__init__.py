"""Command line tools that read deployed stacks through boto3."""
