"""Catalogue of AWS services the assistant knows how to describe."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CatalogEntry:
    key: str
    name: str
    category: str


SERVICE_CATALOG: dict[str, CatalogEntry] = {
    entry.key: entry
    for entry in (
        CatalogEntry("EC2", "Amazon EC2", "Compute"),
        CatalogEntry("RDS", "Amazon RDS", "Database"),
        CatalogEntry("Lambda", "AWS Lambda", "Compute"),
        CatalogEntry("S3", "Amazon S3", "Storage"),
        CatalogEntry("ALB", "Application Load Balancer", "Networking"),
        CatalogEntry("CloudFront", "Amazon CloudFront", "Content Delivery"),
        CatalogEntry("DynamoDB", "Amazon DynamoDB", "Database"),
        CatalogEntry("ElastiCache", "Amazon ElastiCache", "Caching"),
        CatalogEntry("API Gateway", "Amazon API Gateway", "Application Integration"),
        CatalogEntry("SQS", "Amazon SQS", "Application Integration"),
        CatalogEntry("SNS", "Amazon SNS", "Application Integration"),
        CatalogEntry("EKS", "Amazon EKS", "Containers"),
        CatalogEntry("VPC", "Amazon VPC", "Networking"),
        CatalogEntry("Route 53", "Amazon Route 53", "Networking"),
        CatalogEntry("CloudWatch", "Amazon CloudWatch", "Management & Governance"),
    )
}


def match_service(name: str) -> CatalogEntry | None:
    """Match a free-form service name to a catalogue entry.

    Tries the exact key first, then a case-insensitive containment match in
    either direction against keys and display names. Returns None when
    nothing matches.
    """
    if not name:
        return None
    if name in SERVICE_CATALOG:
        return SERVICE_CATALOG[name]

    needle = name.strip().lower()
    if not needle:
        return None

    for key, entry in SERVICE_CATALOG.items():
        if key.lower() in needle or needle in entry.name.lower():
            return entry
    return None
