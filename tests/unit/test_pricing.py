"""Tests for the pricing table and cost calculations."""

from decimal import Decimal

import pytest

from architect_api.exceptions import UnknownConfigurationError, UnknownServiceError, ValidationError
from architect_api.models import ServiceLine
from architect_api.pricing import (
    HOURS_PER_MONTH,
    PRICING_TABLE,
    calculate_service_cost,
    estimate_data_transfer_cost,
    format_usd,
    from_cents,
    generate_pricing_breakdown,
    get_all_services,
    get_service_info,
    to_cents,
)


class TestPricingTable:
    """Test the static pricing table."""

    def test_contains_supported_services(self):
        assert set(get_all_services()) == {
            "EC2",
            "RDS",
            "ALB",
            "CloudFront",
            "S3",
            "Lambda",
            "DynamoDB",
            "ElastiCache",
        }

    def test_service_info(self):
        ec2 = get_service_info("EC2")
        assert ec2 is not None
        assert ec2.name == "Amazon EC2"
        assert ec2.unit == "hour"
        assert ec2.price_per_unit == Decimal("0.0464")
        assert ec2.configurations["t3.large"].multiplier == Decimal("1.0")

    def test_cloudfront_is_global(self):
        assert PRICING_TABLE.get_service("CloudFront").region == "global"

    def test_unknown_service_info_is_none(self):
        assert get_service_info("Mainframe") is None

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            PRICING_TABLE.services["EC2"] = None  # type: ignore[index]


class TestCalculateServiceCost:
    """Test monthly cost calculation."""

    def test_ec2_t3_large_full_month(self):
        assert calculate_service_cost("EC2", "t3.large", HOURS_PER_MONTH) == 33.87

    def test_default_usage_is_one_month_of_hours(self):
        assert calculate_service_cost("RDS", "db.t3.medium") == 105.85

    def test_rounds_half_up(self):
        # 0.0225 * 730 = 16.425
        assert calculate_service_cost("ALB", "standard") == 16.43

    def test_multiplier_applied(self):
        assert calculate_service_cost("Lambda", "512mb", 10) == 8.0

    def test_zero_usage(self):
        assert calculate_service_cost("S3", "glacier", 0) == 0.0

    def test_unknown_service(self):
        with pytest.raises(UnknownServiceError, match="Service Mainframe not found in pricing data"):
            calculate_service_cost("Mainframe", "large")

    def test_unknown_configuration(self):
        with pytest.raises(
            UnknownConfigurationError, match="Configuration t9.huge not found for service EC2"
        ):
            calculate_service_cost("EC2", "t9.huge")

    def test_lookup_errors_are_validation_errors(self):
        with pytest.raises(ValidationError):
            calculate_service_cost("EC2", "t9.huge")


class TestDataTransfer:
    """Test data transfer estimates."""

    @pytest.mark.parametrize("gb", [0, 0.5, 1])
    def test_first_gigabyte_free(self, gb):
        assert estimate_data_transfer_cost(gb) == 0.0

    def test_first_tier_rate(self):
        assert estimate_data_transfer_cost(100) == 8.91

    def test_second_tier_rate(self):
        assert estimate_data_transfer_cost(20000) == 1699.92


class TestPricingBreakdown:
    """Test breakdown generation."""

    def test_breakdown_sums_line_items(self, sample_services):
        breakdown = generate_pricing_breakdown(sample_services)

        assert [item.service for item in breakdown.items] == ["Amazon EC2", "Amazon RDS", "Amazon S3"]
        assert breakdown.total == 120.0

    def test_details_fall_back_to_instance_type(self):
        breakdown = generate_pricing_breakdown(
            [ServiceLine(name="Amazon EC2", monthly_cost=1.5, configuration={"instanceType": "t3.micro"})]
        )
        assert breakdown.items[0].details == "t3.micro"

    def test_details_default(self):
        breakdown = generate_pricing_breakdown([{"name": "Amazon SQS", "monthlyCost": 0.4}])
        assert breakdown.items[0].details == "Standard configuration"
        assert breakdown.total == 0.4

    def test_empty(self):
        breakdown = generate_pricing_breakdown([])
        assert breakdown.items == []
        assert breakdown.total == 0.0


class TestMoney:
    """Test cent conversion and display formatting."""

    def test_to_cents(self):
        assert to_cents(120) == 12000
        assert to_cents(33.87) == 3387
        assert to_cents(19.999) == 2000

    def test_to_cents_half_up(self):
        assert to_cents(0.005) == 1

    def test_from_cents(self):
        assert from_cents(12000) == 120.0
        assert from_cents(3387) == 33.87

    def test_format_whole_dollars(self):
        assert format_usd(120) == "$120"
        assert format_usd(1234.5) == "$1,235"

    def test_format_detailed(self):
        assert format_usd(1234.5, detailed=True) == "$1,234.50"
        assert format_usd(0, detailed=True) == "$0.00"


class TestNonFiniteUsage:
    """Usage must be a real number of units."""

    @pytest.mark.parametrize("usage", [float("inf"), float("-inf"), float("nan")])
    def test_rejected(self, usage):
        with pytest.raises(ValidationError, match="finite"):
            calculate_service_cost("EC2", "t3.large", usage)
