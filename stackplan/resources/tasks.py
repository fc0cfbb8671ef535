"""
IAM roles, Fargate task definitions and services.
"""
from __future__ import annotations

from typing import Any, Dict, List

from ..ir import Ref
from ..registry import register
from ._shared import managed_policy_arn, props

ECR_PULL_ACTIONS = [
    "ecr:BatchCheckLayerAvailability",
    "ecr:GetDownloadUrlForLayer",
    "ecr:BatchGetImage",
]


def _pull_policy(repositories: List[Ref]) -> Dict[str, Any]:
    return {
        "PolicyName": "EcrPull",
        "PolicyDocument": {
            "Version": "2012-10-17",
            "Statement": [
                {"Action": ECR_PULL_ACTIONS, "Effect": "Allow", "Resource": repositories},
                {"Action": "ecr:GetAuthorizationToken", "Effect": "Allow", "Resource": "*"},
            ],
        },
    }


@register("Role")
def render_role(node):
    a = node.attributes
    pull_from = [Ref(r.target, "Arn") for r in a.get("pull_from", [])]
    managed = [managed_policy_arn(p) for p in a.get("managed_policies", [])]
    return "AWS::IAM::Role", props([
        ("AssumeRolePolicyDocument", {
            "Version": "2012-10-17",
            "Statement": [{
                "Action": "sts:AssumeRole",
                "Effect": "Allow",
                "Principal": {"Service": a["service_principal"]},
            }],
        }),
        ("ManagedPolicyArns", managed or None),
        ("Policies", [_pull_policy(pull_from)] if pull_from else None),
    ])


def _container(c: Dict[str, Any]) -> Dict[str, Any]:
    log = None
    if "log_group" in c:
        log = {
            "LogDriver": "awslogs",
            "Options": {
                "awslogs-group": c["log_group"],
                "awslogs-stream-prefix": c.get("stream_prefix", c["name"]),
                "awslogs-region": {"Ref": "AWS::Region"},
            },
        }
    hc = c.get("health_check")
    health = None
    if hc:
        health = props([
            ("Command", hc["command"]),
            ("Interval", hc.get("interval")),
            ("Timeout", hc.get("timeout")),
            ("StartPeriod", hc.get("start_period")),
            ("Retries", hc.get("retries")),
        ])
    env = [{"Name": k, "Value": str(v)} for k, v in c.get("environment", {}).items()]
    return props([
        ("Name", c["name"]),
        ("Image", c["image"]),
        ("Essential", c.get("essential", True)),
        ("PortMappings", [
            {"ContainerPort": p["container_port"], "Protocol": p.get("protocol", "tcp")}
            for p in c.get("port_mappings", [])
        ] or None),
        ("Environment", env or None),
        ("Command", c.get("command")),
        ("HealthCheck", health),
        ("LogConfiguration", log),
        ("Memory", c.get("memory_limit")),
        ("MemoryReservation", c.get("memory_reservation")),
    ])


@register("TaskDefinition")
def render_task_definition(node):
    a = node.attributes
    return "AWS::ECS::TaskDefinition", props([
        ("Family", a.get("family")),
        ("Cpu", str(a["cpu"])),
        ("Memory", str(a["memory"])),
        ("NetworkMode", "awsvpc"),
        ("RequiresCompatibilities", ["FARGATE"]),
        ("RuntimePlatform", {
            "CpuArchitecture": a.get("cpu_architecture", "ARM64"),
            "OperatingSystemFamily": a.get("os_family", "LINUX"),
        }),
        ("ExecutionRoleArn", a.get("execution_role")),
        ("TaskRoleArn", a.get("task_role")),
        ("ContainerDefinitions", [_container(c) for c in a.get("containers", [])]),
    ])


@register("Service")
def render_service(node):
    a = node.attributes
    lbs = None
    if "target_group" in a:
        lbs = [{
            "ContainerName": a["container_name"],
            "ContainerPort": a["container_port"],
            "TargetGroupArn": a["target_group"],
        }]
    return "AWS::ECS::Service", props([
        ("Cluster", a["cluster"]),
        ("TaskDefinition", a["task_definition"]),
        ("DesiredCount", a.get("desired_count", 1)),
        ("LaunchType", "FARGATE"),
        ("NetworkConfiguration", {
            "AwsvpcConfiguration": {
                "AssignPublicIp": "ENABLED" if a.get("assign_public_ip") else "DISABLED",
                "SecurityGroups": a.get("security_groups", []),
                "Subnets": a["subnets"],
            },
        }),
        ("LoadBalancers", lbs),
        ("HealthCheckGracePeriodSeconds", a.get("health_check_grace_period")),
    ])
