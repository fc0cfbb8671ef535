from __future__ import annotations

from ..registry import register
from ._shared import props


@register("Repository")
def render_repository(node):
    a = node.attributes
    encryption = a.get("encryption")
    return "AWS::ECR::Repository", props([
        ("RepositoryName", a.get("name")),
        ("ImageTagMutability", a.get("tag_mutability", "MUTABLE")),
        ("EncryptionConfiguration", {"EncryptionType": encryption} if encryption else None),
        ("EmptyOnDelete", a.get("empty_on_delete")),
    ])


@register("Cluster")
def render_cluster(node):
    a = node.attributes
    settings = None
    if a.get("container_insights") is not None:
        settings = [{
            "Name": "containerInsights",
            "Value": "enabled" if a["container_insights"] else "disabled",
        }]
    providers = ["FARGATE", "FARGATE_SPOT"] if a.get("fargate_capacity_providers") else None
    return "AWS::ECS::Cluster", props([
        ("ClusterName", a.get("name")),
        ("ClusterSettings", settings),
        ("CapacityProviders", providers),
    ])


@register("LogGroup")
def render_log_group(node):
    return "AWS::Logs::LogGroup", props([
        ("LogGroupName", node.attributes.get("name")),
        ("RetentionInDays", node.attributes.get("retention_days")),
    ])
