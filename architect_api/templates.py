"""Infrastructure-as-code renderers for architecture recommendations.

Two independent renderers turn a list of service lines plus the estimated
monthly total into a CloudFormation stack template (JSON) and a Terraform
configuration (HCL). Both list every service exactly once, derive resource
properties from the line's free-form configuration, and fall back to a
generic placeholder resource for services they do not recognise.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .catalog import match_service
from .models import ServiceLine

DEFAULT_REGION = "us-east-1"
DEFAULT_AMI = "ami-0c55b159cbfafe1f0"

_CFN_TYPES: dict[str, str] = {
    "EC2": "AWS::EC2::Instance",
    "RDS": "AWS::RDS::DBInstance",
    "S3": "AWS::S3::Bucket",
    "ALB": "AWS::ElasticLoadBalancingV2::LoadBalancer",
    "CloudFront": "AWS::CloudFront::Distribution",
    "Lambda": "AWS::Lambda::Function",
    "ElastiCache": "AWS::ElastiCache::CacheCluster",
    "DynamoDB": "AWS::DynamoDB::Table",
    "SQS": "AWS::SQS::Queue",
    "SNS": "AWS::SNS::Topic",
    "API Gateway": "AWS::ApiGateway::RestApi",
    "EKS": "AWS::EKS::Cluster",
    "VPC": "AWS::EC2::VPC",
    "Route 53": "AWS::Route53::HostedZone",
    "CloudWatch": "AWS::Logs::LogGroup",
}
_CFN_FALLBACK_TYPE = "AWS::CloudFormation::WaitConditionHandle"

_TF_RESOURCES: dict[str, str] = {
    "EC2": "aws_instance",
    "RDS": "aws_db_instance",
    "S3": "aws_s3_bucket",
    "ALB": "aws_lb",
    "CloudFront": "aws_cloudfront_distribution",
    "Lambda": "aws_lambda_function",
    "ElastiCache": "aws_elasticache_cluster",
    "DynamoDB": "aws_dynamodb_table",
    "SQS": "aws_sqs_queue",
    "SNS": "aws_sns_topic",
    "API Gateway": "aws_api_gateway_rest_api",
    "EKS": "aws_eks_cluster",
    "VPC": "aws_vpc",
    "Route 53": "aws_route53_zone",
    "CloudWatch": "aws_cloudwatch_log_group",
}
_TF_FALLBACK_RESOURCE = "null_resource"

_TF_PROVIDERS: dict[str, dict[str, str]] = {
    "aws": {"source": "hashicorp/aws", "version": "~> 5.0"},
    "null": {"source": "hashicorp/null", "version": "~> 3.2"},
}


def coerce_service_lines(services: Iterable[ServiceLine | Mapping[str, Any]]) -> list[ServiceLine]:
    """Best-effort conversion of stored or model-supplied service dicts."""
    lines = []
    for service in services:
        if isinstance(service, ServiceLine):
            lines.append(service)
            continue
        try:
            lines.append(ServiceLine.model_validate(service))
        except PydanticValidationError:
            config = service.get("configuration")
            lines.append(
                ServiceLine(
                    name=str(service.get("name") or "Service"),
                    type=str(service.get("type") or ""),
                    description=str(service.get("description") or ""),
                    configuration=config if isinstance(config, dict) else {},
                )
            )
    return lines


def _config(line: ServiceLine, *keys: str, default: Any = None) -> Any:
    """First configuration value among keys, matched case-insensitively."""
    lowered = {str(k).lower(): v for k, v in line.configuration.items()}
    for key in keys:
        value = lowered.get(key.lower())
        if value not in (None, ""):
            return value
    return default


def _int_from(value: Any, default: int) -> int:
    """Pull the leading integer out of values like "100GB" or 512."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    match = re.search(r"\d+", str(value or ""))
    return int(match.group()) if match else default


def _flag(value: Any) -> bool:
    """Read booleans the model may send as text, e.g. "false" or "yes"."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "y", "1", "on", "enabled")
    return bool(value)


def _kind(line: ServiceLine) -> str | None:
    entry = match_service(line.name) or match_service(line.type)
    return entry.key if entry else None


def _region(lines: list[ServiceLine]) -> str:
    for line in lines:
        region = _config(line, "region")
        if isinstance(region, str) and region != "global":
            return region
    return DEFAULT_REGION


def _unique(base: str, taken: set[str]) -> str:
    name = base
    counter = 2
    while name in taken:
        name = f"{base}{counter}"
        counter += 1
    taken.add(name)
    return name


def _cost_str(amount: float) -> str:
    return f"{amount:.2f}"


# CloudFormation


def _logical_id(name: str) -> str:
    words = re.sub(r"[^a-zA-Z0-9]+", " ", name).split()
    logical = "".join(word[:1].upper() + word[1:] for word in words)
    if not logical or not logical[0].isalpha():
        logical = f"Resource{logical}"
    return logical


def _cfn_properties(kind: str | None, line: ServiceLine, logical_id: str) -> dict[str, Any]:
    tags = [{"Key": "Name", "Value": line.name}]
    slug = re.sub(r"[^a-z0-9-]+", "-", logical_id.lower()).strip("-")

    if kind == "EC2":
        return {
            "InstanceType": _config(line, "instanceType", "instance_type", default="t3.medium"),
            "ImageId": _config(line, "ami", "imageId", default=DEFAULT_AMI),
            "Tags": tags,
        }
    if kind == "RDS":
        return {
            "DBInstanceClass": _config(
                line, "instanceType", "instanceClass", "instance_class", default="db.t3.medium"
            ),
            "Engine": _config(line, "engine", default="postgres"),
            "AllocatedStorage": str(_int_from(_config(line, "storage", "allocatedStorage"), 20)),
            "MultiAZ": _flag(_config(line, "multiAZ", "multi_az", default=False)),
            "MasterUsername": "admin",
            "ManageMasterUserPassword": True,
            "Tags": tags,
        }
    if kind == "S3":
        return {"Tags": tags}
    if kind == "ALB":
        return {"Type": "application", "Scheme": "internet-facing", "Tags": tags}
    if kind == "CloudFront":
        origin_id = f"{slug}-origin"
        return {
            "DistributionConfig": {
                "Enabled": True,
                "Origins": [
                    {
                        "DomainName": _config(line, "origin", default="origin.example.com"),
                        "Id": origin_id,
                        "CustomOriginConfig": {"OriginProtocolPolicy": "https-only"},
                    }
                ],
                "DefaultCacheBehavior": {
                    "TargetOriginId": origin_id,
                    "ViewerProtocolPolicy": "redirect-to-https",
                    "ForwardedValues": {"QueryString": False},
                },
            }
        }
    if kind == "Lambda":
        return {
            "Runtime": _config(line, "runtime", default="python3.12"),
            "Handler": "index.handler",
            "MemorySize": _int_from(_config(line, "memory", "memorySize"), 128),
            "Role": {"Fn::Sub": "arn:aws:iam::${AWS::AccountId}:role/lambda-execution-role"},
            "Code": {"ZipFile": "def handler(event, context):\n    return {}\n"},
            "Tags": tags,
        }
    if kind == "ElastiCache":
        return {
            "Engine": _config(line, "engine", default="redis"),
            "CacheNodeType": _config(
                line, "nodeType", "instanceType", "node_type", default="cache.t3.medium"
            ),
            "NumCacheNodes": _int_from(_config(line, "nodes", "numCacheNodes"), 1),
        }
    if kind == "DynamoDB":
        billing = str(_config(line, "billingMode", "capacity", default="on-demand")).lower()
        hash_key = _config(line, "hashKey", "partitionKey", default="id")
        properties: dict[str, Any] = {
            "BillingMode": "PROVISIONED" if "provisioned" in billing else "PAY_PER_REQUEST",
            "AttributeDefinitions": [{"AttributeName": hash_key, "AttributeType": "S"}],
            "KeySchema": [{"AttributeName": hash_key, "KeyType": "HASH"}],
            "Tags": tags,
        }
        if properties["BillingMode"] == "PROVISIONED":
            properties["ProvisionedThroughput"] = {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5}
        return properties
    if kind in ("SQS", "SNS"):
        return {"Tags": tags}
    if kind == "API Gateway":
        return {"Name": line.name}
    if kind == "EKS":
        return {
            "RoleArn": {"Fn::Sub": "arn:aws:iam::${AWS::AccountId}:role/eks-cluster-role"},
            "ResourcesVpcConfig": {"SubnetIds": []},
        }
    if kind == "VPC":
        return {
            "CidrBlock": _config(line, "cidr", "cidrBlock", default="10.0.0.0/16"),
            "EnableDnsSupport": True,
            "EnableDnsHostnames": True,
            "Tags": tags,
        }
    if kind == "Route 53":
        return {"Name": _config(line, "domain", default="example.com")}
    if kind == "CloudWatch":
        return {"RetentionInDays": _int_from(_config(line, "retention", "retentionDays"), 30)}
    return {}


def render_cloudformation(
    services: Iterable[ServiceLine | Mapping[str, Any]],
    total_monthly_cost: float,
) -> str:
    """Render a CloudFormation template (JSON) for the services."""
    lines = coerce_service_lines(services)
    resources: dict[str, Any] = {}
    taken: set[str] = set()

    for line in lines:
        kind = _kind(line)
        logical_id = _unique(_logical_id(line.name), taken)
        resource: dict[str, Any] = {
            "Type": _CFN_TYPES.get(kind, _CFN_FALLBACK_TYPE) if kind else _CFN_FALLBACK_TYPE,
            "Metadata": {
                "Service": line.name,
                "Description": line.description,
                "EstimatedMonthlyCost": _cost_str(line.monthly_cost),
            },
        }
        properties = _cfn_properties(kind, line, logical_id)
        if properties:
            resource["Properties"] = properties
        resources[logical_id] = resource

    template: dict[str, Any] = {
        "AWSTemplateFormatVersion": "2010-09-09",
        "Description": (
            "AWS architecture generated by the architecture assistant. "
            f"Estimated monthly cost: ${_cost_str(total_monthly_cost)}"
        ),
        "Resources": resources,
        "Outputs": {
            "EstimatedMonthlyCost": {
                "Description": "Estimated monthly cost in USD",
                "Value": _cost_str(total_monthly_cost),
            }
        },
    }
    return json.dumps(template, indent=2)


# Terraform


def _hcl_str(value: Any) -> str:
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"').replace("${", "$${")
    escaped = escaped.replace("\n", "\\n")
    return f'"{escaped}"'


def _comment_text(text: str) -> str:
    """Single-line text safe to place after a # comment marker."""
    return " ".join(re.sub(r"[\x00-\x1f\x7f]", " ", text).split())


def _tf_name(name: str) -> str:
    ident = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    if not ident or not (ident[0].isalpha() or ident[0] == "_"):
        ident = f"svc_{ident}"
    return ident


def _tf_tags(line: ServiceLine) -> list[str]:
    return ["  tags = {", f"    Name        = {_hcl_str(line.name)}", "    Environment = var.environment", "  }"]


def _tf_body(kind: str | None, line: ServiceLine, ident: str) -> list[str]:
    slug = ident.replace("_", "-")

    if kind == "EC2":
        return [
            f"  ami           = {_hcl_str(_config(line, 'ami', 'imageId', default=DEFAULT_AMI))}",
            f"  instance_type = {_hcl_str(_config(line, 'instanceType', 'instance_type', default='t3.medium'))}",
            *_tf_tags(line),
        ]
    if kind == "RDS":
        instance_class = _config(
            line, "instanceType", "instanceClass", "instance_class", default="db.t3.medium"
        )
        multi_az = "true" if _flag(_config(line, "multiAZ", "multi_az", default=False)) else "false"
        return [
            f"  identifier_prefix           = {_hcl_str(slug)}",
            f"  engine                      = {_hcl_str(_config(line, 'engine', default='postgres'))}",
            f"  instance_class              = {_hcl_str(instance_class)}",
            f"  allocated_storage           = {_int_from(_config(line, 'storage', 'allocatedStorage'), 20)}",
            '  username                    = "admin"',
            "  manage_master_user_password = true",
            f"  multi_az                    = {multi_az}",
            "  skip_final_snapshot         = true",
            *_tf_tags(line),
        ]
    if kind == "S3":
        return [f"  bucket_prefix = {_hcl_str(slug[:37] + '-')}", *_tf_tags(line)]
    if kind == "ALB":
        return [
            '  load_balancer_type = "application"',
            "  internal           = false",
            *_tf_tags(line),
        ]
    if kind == "CloudFront":
        return [
            "  enabled = true",
            "  origin {",
            "    domain_name = var.cloudfront_origin_domain",
            f'    origin_id   = "{slug}-origin"',
            "  }",
            "  default_cache_behavior {",
            '    allowed_methods        = ["GET", "HEAD"]',
            '    cached_methods         = ["GET", "HEAD"]',
            f'    target_origin_id       = "{slug}-origin"',
            '    viewer_protocol_policy = "redirect-to-https"',
            "    forwarded_values {",
            "      query_string = false",
            '      cookies { forward = "none" }',
            "    }",
            "  }",
            "  restrictions {",
            '    geo_restriction { restriction_type = "none" }',
            "  }",
            "  viewer_certificate {",
            "    cloudfront_default_certificate = true",
            "  }",
            *_tf_tags(line),
        ]
    if kind == "Lambda":
        return [
            f"  function_name = {_hcl_str(slug)}",
            "  role          = var.lambda_role_arn",
            '  handler       = "index.handler"',
            f"  runtime       = {_hcl_str(_config(line, 'runtime', default='python3.12'))}",
            f"  memory_size   = {_int_from(_config(line, 'memory', 'memorySize'), 128)}",
            '  filename      = "lambda.zip"',
            *_tf_tags(line),
        ]
    if kind == "ElastiCache":
        node_type = _config(line, "nodeType", "instanceType", "node_type", default="cache.t3.medium")
        return [
            f"  cluster_id      = {_hcl_str(slug[:40])}",
            f"  engine          = {_hcl_str(_config(line, 'engine', default='redis'))}",
            f"  node_type       = {_hcl_str(node_type)}",
            f"  num_cache_nodes = {_int_from(_config(line, 'nodes', 'numCacheNodes'), 1)}",
            *_tf_tags(line),
        ]
    if kind == "DynamoDB":
        billing = str(_config(line, "billingMode", "capacity", default="on-demand")).lower()
        hash_key = _config(line, "hashKey", "partitionKey", default="id")
        body = [f"  name         = {_hcl_str(slug)}"]
        if "provisioned" in billing:
            body += ['  billing_mode = "PROVISIONED"', "  read_capacity  = 5", "  write_capacity = 5"]
        else:
            body.append('  billing_mode = "PAY_PER_REQUEST"')
        body += [
            f"  hash_key     = {_hcl_str(hash_key)}",
            "  attribute {",
            f"    name = {_hcl_str(hash_key)}",
            '    type = "S"',
            "  }",
            *_tf_tags(line),
        ]
        return body
    if kind in ("SQS", "SNS", "API Gateway"):
        return [f"  name = {_hcl_str(slug)}", *_tf_tags(line)]
    if kind == "EKS":
        return [
            f"  name     = {_hcl_str(slug)}",
            "  role_arn = var.eks_role_arn",
            "  vpc_config {",
            "    subnet_ids = var.subnet_ids",
            "  }",
            *_tf_tags(line),
        ]
    if kind == "VPC":
        return [
            f"  cidr_block           = {_hcl_str(_config(line, 'cidr', 'cidrBlock', default='10.0.0.0/16'))}",
            "  enable_dns_support   = true",
            "  enable_dns_hostnames = true",
            *_tf_tags(line),
        ]
    if kind == "Route 53":
        return [f"  name = {_hcl_str(_config(line, 'domain', default='example.com'))}", *_tf_tags(line)]
    if kind == "CloudWatch":
        return [
            f'  name              = "/aws/{slug}"',
            f"  retention_in_days = {_int_from(_config(line, 'retention', 'retentionDays'), 30)}",
            *_tf_tags(line),
        ]
    return [
        "  triggers = {",
        f"    service      = {_hcl_str(line.name)}",
        f"    monthly_cost = {_hcl_str(_cost_str(line.monthly_cost))}",
        "  }",
    ]


_TF_VARIABLES: dict[str, list[str]] = {
    "Lambda": ['variable "lambda_role_arn" {', '  description = "IAM role ARN for Lambda functions"', "}"],
    "EKS": [
        'variable "eks_role_arn" {',
        '  description = "IAM role ARN for the EKS cluster"',
        "}",
        "",
        'variable "subnet_ids" {',
        '  description = "Subnets for the EKS cluster"',
        "  type        = list(string)",
        "  default     = []",
        "}",
    ],
    "CloudFront": [
        'variable "cloudfront_origin_domain" {',
        '  description = "Domain name for the CloudFront origin"',
        '  default     = "origin.example.com"',
        "}",
    ],
}


def render_terraform(
    services: Iterable[ServiceLine | Mapping[str, Any]],
    total_monthly_cost: float,
) -> str:
    """Render a Terraform configuration (HCL) for the services."""
    lines = coerce_service_lines(services)
    kinds = [_kind(line) for line in lines]
    providers = ["aws"] + (["null"] if any(kind is None for kind in kinds) else [])

    parts: list[str] = [
        "# Generated by the architecture assistant",
        f"# Estimated monthly cost: ${_cost_str(total_monthly_cost)}",
        "",
        "terraform {",
        "  required_providers {",
    ]
    for provider in providers:
        source = _TF_PROVIDERS[provider]
        parts += [
            f"    {provider} = {{",
            f'      source  = "{source["source"]}"',
            f'      version = "{source["version"]}"',
            "    }",
        ]
    parts += ["  }", "}", ""]

    parts += [
        'variable "aws_region" {',
        f"  default = {_hcl_str(_region(lines))}",
        "}",
        "",
        'variable "environment" {',
        '  default = "production"',
        "}",
        "",
    ]
    for kind, variable in _TF_VARIABLES.items():
        if kind in kinds:
            parts += [*variable, ""]

    parts += ['provider "aws" {', "  region = var.aws_region", "}", ""]

    taken: set[str] = set()
    for line, kind in zip(lines, kinds, strict=True):
        ident = _unique(_tf_name(line.name), taken)
        resource_type = _TF_RESOURCES.get(kind, _TF_FALLBACK_RESOURCE) if kind else _TF_FALLBACK_RESOURCE
        parts.append(f"# {_comment_text(line.name)}: ${_cost_str(line.monthly_cost)}/month")
        parts.append(f'resource "{resource_type}" "{ident}" {{')
        parts += _tf_body(kind, line, ident)
        parts += ["}", ""]

    parts += [
        'output "estimated_monthly_cost" {',
        '  description = "Estimated monthly cost in USD"',
        f"  value       = {_hcl_str(_cost_str(total_monthly_cost))}",
        "}",
    ]
    return "\n".join(parts) + "\n"

