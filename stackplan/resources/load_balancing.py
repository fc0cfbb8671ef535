from __future__ import annotations

from ..registry import register
from ._shared import props


@register("LoadBalancer")
def render_load_balancer(node):
    a = node.attributes
    return "AWS::ElasticLoadBalancingV2::LoadBalancer", props([
        ("Type", "application"),
        ("Scheme", "internet-facing" if a.get("internet_facing", True) else "internal"),
        ("SecurityGroups", a.get("security_groups")),
        ("Subnets", a["subnets"]),
        ("LoadBalancerAttributes", [{
            "Key": "deletion_protection.enabled",
            "Value": "true" if a.get("deletion_protection", False) else "false",
        }]),
    ])


@register("TargetGroup")
def render_target_group(node):
    a = node.attributes
    hc = a.get("health_check", {})
    return "AWS::ElasticLoadBalancingV2::TargetGroup", props([
        ("Port", a.get("port", 80)),
        ("Protocol", a.get("protocol", "HTTP")),
        ("TargetType", a.get("target_type", "ip")),
        ("VpcId", a["vpc"]),
        ("HealthCheckPath", hc.get("path")),
        ("HealthCheckProtocol", hc.get("protocol")),
        ("HealthCheckIntervalSeconds", hc.get("interval")),
        ("HealthCheckTimeoutSeconds", hc.get("timeout")),
        ("HealthyThresholdCount", hc.get("healthy_threshold")),
        ("UnhealthyThresholdCount", hc.get("unhealthy_threshold")),
        ("Matcher", {"HttpCode": hc["healthy_http_codes"]} if "healthy_http_codes" in hc else None),
    ])


@register("Listener")
def render_listener(node):
    a = node.attributes
    return "AWS::ElasticLoadBalancingV2::Listener", props([
        ("LoadBalancerArn", a["load_balancer"]),
        ("Port", a.get("port", 80)),
        ("Protocol", a.get("protocol", "HTTP")),
        ("DefaultActions", [{"Type": "forward", "TargetGroupArn": a["target_group"]}]),
    ])
