"""Static AWS pricing table and cost calculations.

Prices are simplified us-east-1 on-demand list prices. Each service has a
base price per unit and a set of named configurations whose multiplier scales
that base price.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Any

from .exceptions import UnknownConfigurationError, UnknownServiceError, ValidationError
from .models import ServiceLine

HOURS_PER_MONTH = 730
_CENT = Decimal("0.01")


@dataclass(frozen=True)
class ConfigurationOption:
    """Multiplier applied to a service's base price."""

    multiplier: Decimal
    description: str


@dataclass(frozen=True)
class ServicePricing:
    """Base pricing for one AWS service."""

    name: str
    category: str
    unit: str
    price_per_unit: Decimal
    region: str
    configurations: Mapping[str, ConfigurationOption]

    def configuration(self, key: str) -> ConfigurationOption | None:
        return self.configurations.get(key)


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for supported services."""

    services: Mapping[str, ServicePricing]

    def get_service(self, service: str) -> ServicePricing:
        """Get pricing for a service.

        Raises:
            UnknownServiceError: If the service is not priced.
        """
        pricing = self.services.get(service)
        if pricing is None:
            raise UnknownServiceError(service)
        return pricing

    def get_configuration(self, service: str, configuration: str) -> ConfigurationOption:
        """Get a configuration option for a service.

        Raises:
            UnknownServiceError: If the service is not priced.
            UnknownConfigurationError: If the service has no such configuration.
        """
        option = self.get_service(service).configuration(configuration)
        if option is None:
            raise UnknownConfigurationError(service, configuration)
        return option


def _service(
    name: str,
    category: str,
    unit: str,
    price: str,
    configurations: dict[str, tuple[str, str]],
    region: str = "us-east-1",
) -> ServicePricing:
    return ServicePricing(
        name=name,
        category=category,
        unit=unit,
        price_per_unit=Decimal(price),
        region=region,
        configurations=MappingProxyType(
            {
                key: ConfigurationOption(Decimal(multiplier), description)
                for key, (multiplier, description) in configurations.items()
            }
        ),
    )


PRICING_TABLE = PricingTable(
    MappingProxyType(
        {
            "EC2": _service(
                "Amazon EC2",
                "Compute",
                "hour",
                "0.0464",  # t3.large on-demand
                {
                    "t3.micro": ("0.2", "1 vCPU, 1 GB RAM"),
                    "t3.small": ("0.4", "1 vCPU, 2 GB RAM"),
                    "t3.medium": ("0.8", "2 vCPU, 4 GB RAM"),
                    "t3.large": ("1.0", "2 vCPU, 8 GB RAM"),
                    "t3.xlarge": ("2.0", "4 vCPU, 16 GB RAM"),
                    "m5.large": ("1.2", "2 vCPU, 8 GB RAM (balanced)"),
                    "c5.large": ("1.1", "2 vCPU, 4 GB RAM (compute optimized)"),
                },
            ),
            "RDS": _service(
                "Amazon RDS",
                "Database",
                "hour",
                "0.145",  # db.t3.medium PostgreSQL
                {
                    "db.t3.micro": ("0.3", "1 vCPU, 1 GB RAM"),
                    "db.t3.small": ("0.5", "1 vCPU, 2 GB RAM"),
                    "db.t3.medium": ("1.0", "2 vCPU, 4 GB RAM"),
                    "db.t3.large": ("2.0", "2 vCPU, 8 GB RAM"),
                    "multi-az": ("2.0", "Multi-AZ deployment"),
                },
            ),
            "ALB": _service(
                "Application Load Balancer",
                "Networking",
                "hour",
                "0.0225",
                {
                    "standard": ("1.0", "Standard load balancer"),
                    "high-availability": ("1.5", "Multi-AZ load balancer"),
                },
            ),
            "CloudFront": _service(
                "Amazon CloudFront",
                "Content Delivery",
                "GB",
                "0.085",
                {
                    "standard": ("1.0", "Standard distribution"),
                    "premium": ("1.25", "Premium edge locations"),
                },
                region="global",
            ),
            "S3": _service(
                "Amazon S3",
                "Storage",
                "GB/month",
                "0.023",
                {
                    "standard": ("1.0", "Standard storage class"),
                    "ia": ("0.6", "Infrequent Access"),
                    "glacier": ("0.2", "Glacier storage"),
                },
            ),
            "Lambda": _service(
                "AWS Lambda",
                "Compute",
                "1M requests",
                "0.20",
                {
                    "128mb": ("1.0", "128 MB memory"),
                    "256mb": ("2.0", "256 MB memory"),
                    "512mb": ("4.0", "512 MB memory"),
                    "1024mb": ("8.0", "1024 MB memory"),
                },
            ),
            "DynamoDB": _service(
                "Amazon DynamoDB",
                "Database",
                "RCU/WCU",
                "0.25",
                {
                    "on-demand": ("1.25", "On-demand billing"),
                    "provisioned": ("1.0", "Provisioned throughput"),
                },
            ),
            "ElastiCache": _service(
                "Amazon ElastiCache",
                "Caching",
                "hour",
                "0.068",  # cache.t3.medium
                {
                    "cache.t3.micro": ("0.3", "0.5 GB memory"),
                    "cache.t3.small": ("0.5", "1.37 GB memory"),
                    "cache.t3.medium": ("1.0", "3.09 GB memory"),
                },
            ),
        }
    )
)


def calculate_service_cost(
    service: str,
    configuration: str,
    usage: float = HOURS_PER_MONTH,
) -> float:
    """Calculate the monthly cost of one service configuration.

    Args:
        service: Pricing table key, e.g. "EC2".
        configuration: Configuration key, e.g. "t3.large".
        usage: Units consumed per month (hours for hourly services).

    Returns:
        base price x multiplier x usage, rounded half-up to cents.

    Raises:
        UnknownServiceError: If the service is not priced.
        UnknownConfigurationError: If the configuration is not offered.
        ValidationError: If usage is not a finite number.
    """
    pricing = PRICING_TABLE.get_service(service)
    option = PRICING_TABLE.get_configuration(service, configuration)
    if not math.isfinite(usage):
        raise ValidationError(f"Usage must be a finite number, got {usage}")

    cost = pricing.price_per_unit * option.multiplier * Decimal(str(usage))
    return float(cost.quantize(_CENT, rounding=ROUND_HALF_UP))


def get_service_info(service: str) -> ServicePricing | None:
    """Look up a service without raising."""
    return PRICING_TABLE.services.get(service)


def get_all_services() -> Mapping[str, ServicePricing]:
    return PRICING_TABLE.services


def estimate_data_transfer_cost(gb_per_month: float) -> float:
    """Estimate data-transfer-out cost; the first GB each month is free."""
    if gb_per_month <= 1:
        return 0.0
    rate = Decimal("0.09") if gb_per_month <= 10 * 1024 else Decimal("0.085")
    cost = (Decimal(str(gb_per_month)) - 1) * rate
    return float(cost.quantize(_CENT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class BreakdownItem:
    service: str
    cost: float
    details: str


@dataclass(frozen=True)
class PricingBreakdown:
    """Per-service costs and their sum."""

    items: list[BreakdownItem] = field(default_factory=list)
    total: float = 0.0


def _line_details(line: ServiceLine) -> str:
    return line.description or line.configuration.get("instanceType") or "Standard configuration"


def generate_pricing_breakdown(
    services: Iterable[ServiceLine | Mapping[str, Any]],
) -> PricingBreakdown:
    """Build a cost breakdown from recommendation service lines."""
    items = []
    for service in services:
        line = service if isinstance(service, ServiceLine) else ServiceLine.model_validate(service)
        items.append(BreakdownItem(line.name, line.monthly_cost, str(_line_details(line))))

    total = sum((Decimal(str(item.cost)) for item in items), Decimal(0))
    return PricingBreakdown(items=items, total=float(total.quantize(_CENT)))


def to_cents(amount: float) -> int:
    """Convert a USD amount to integer cents."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> float:
    return cents / 100


def format_usd(amount: float, detailed: bool = False) -> str:
    """Format a USD amount for display: "$120" or, detailed, "$120.00"."""
    if detailed:
        return f"${amount:,.2f}"
    whole = Decimal(str(amount)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return f"${whole:,}"
