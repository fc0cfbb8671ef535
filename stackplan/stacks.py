"""
The workshop stack: VPC, security groups, load balancer, container registry,
ECS cluster, task definitions and service, declared once and trimmed by the
profile flags in StackConfig.
"""
from __future__ import annotations
from .backends.template import TemplateBackend
from .config import StackConfig
from .graph import DependencyGraph
from .ir import Plan, Ref, ResourceKind
from .resources.network import ANY_IPV4

ECS_TASKS_PRINCIPAL = "ecs-tasks.amazonaws.com"

VPC = "WorkshopVpc"
ALB_SG = "AlbSecurityGroup"
ECS_SG = "EcsSecurityGroup"
ALB = "WorkshopAlb"
TARGET_GROUP = "WorkshopTargetGroup"
LISTENER = "WorkshopListener"
REPOSITORY = "WorkshopRepository"
CLUSTER = "WorkshopCluster"


def _network(g: DependencyGraph, cfg: StackConfig) -> None:
    net = cfg.network
    g.add(
        VPC, ResourceKind.NETWORK,
        cidr=net.cidr,
        max_azs=net.max_azs,
        subnets=[
            {"name": "PublicSubnet", "cidr_mask": net.cidr_mask, "type": "PUBLIC"},
            {"name": "PrivateSubnet", "cidr_mask": net.cidr_mask, "type": "PRIVATE_WITH_EGRESS"},
        ],
        enable_dns_hostnames=True,
        enable_dns_support=True,
    )
    g.add_output("VpcId", VPC, "Ref", "VPC ID")
    g.add_output("PublicSubnets", VPC, "PublicSubnetIds", "Public Subnet IDs")
    g.add_output("PrivateSubnets", VPC, "PrivateSubnetIds", "Private Subnet IDs")


def _security_groups(g: DependencyGraph, cfg: StackConfig) -> None:
    g.add(
        ALB_SG, ResourceKind.SECURITY_GROUP,
        vpc=Ref(VPC),
        description="Security group for Application Load Balancer",
        allow_all_outbound=True,
        ingress=[
            {"peer": ANY_IPV4, "port": 80, "description": "Allow HTTP traffic"},
            {"peer": ANY_IPV4, "port": 443, "description": "Allow HTTPS traffic"},
        ],
    )
    g.add(
        ECS_SG, ResourceKind.SECURITY_GROUP,
        vpc=Ref(VPC),
        description="Security group for ECS containers",
        allow_all_outbound=True,
        ingress=[{
            "peer": Ref(ALB_SG, "GroupId"),
            "port": cfg.service.container_port,
            "description": "Allow traffic from ALB",
        }],
    )
    g.add_output("AlbSecurityGroupId", ALB_SG, "GroupId", "ALB Security Group ID")
    g.add_output("EcsSecurityGroupId", ECS_SG, "GroupId", "ECS Security Group ID")


def _load_balancing(g: DependencyGraph, cfg: StackConfig) -> None:
    g.add(
        ALB, ResourceKind.LOAD_BALANCER,
        internet_facing=True,
        subnets=Ref(VPC, "PublicSubnetIds"),
        security_groups=[Ref(ALB_SG, "GroupId")],
        deletion_protection=False,
    )
    g.add(
        TARGET_GROUP, ResourceKind.TARGET_GROUP,
        vpc=Ref(VPC),
        target_type="ip",
        port=cfg.service.container_port,
        protocol="HTTP",
        health_check={
            "path": cfg.service.health_check_path,
            "protocol": "HTTP",
            "interval": 30,
            "timeout": 5,
            "healthy_threshold": 2,
            "unhealthy_threshold": 3,
            "healthy_http_codes": "200",
        },
    )
    g.add(
        LISTENER, ResourceKind.LISTENER,
        load_balancer=Ref(ALB),
        target_group=Ref(TARGET_GROUP),
        port=80,
        protocol="HTTP",
    )
    g.add_output("AlbArn", ALB, "Ref", "ALB ARN")
    g.add_output("AlbDnsName", ALB, "DNSName", "ALB DNS Name (Access URL)")
    g.add_output("TargetGroupArn", TARGET_GROUP, "Ref", "Target Group ARN")
    g.add_output("AlbUrl", ALB, "http://{DNSName}", "Application URL (HTTP)")


def _repository(g: DependencyGraph, cfg: StackConfig) -> None:
    g.add(
        REPOSITORY, ResourceKind.REPOSITORY,
        name=f"aws-workshop-app-{cfg.resource_suffix}",
        tag_mutability="MUTABLE",
        encryption="KMS" if cfg.flags.repository_encryption else None,
        removal_policy="DESTROY",
        empty_on_delete=True,
    )
    g.add_output("EcrRepositoryArn", REPOSITORY, "Arn", "ECR Repository ARN")
    g.add_output("EcrRepositoryUri", REPOSITORY, "RepositoryUri", "ECR Repository URI (for docker push)")
    g.add_output("EcrRepositoryName", REPOSITORY, "Ref", "ECR Repository Name")


def _cluster(g: DependencyGraph, cfg: StackConfig) -> None:
    g.add(
        CLUSTER, ResourceKind.CLUSTER,
        name=f"aws-workshop-cluster-{cfg.resource_suffix}",
        fargate_capacity_providers=True,
        container_insights=True,
    )
    g.add_output("EcsClusterName", CLUSTER, "Ref", "ECS Cluster Name")
    g.add_output("EcsClusterArn", CLUSTER, "Arn", "ECS Cluster ARN")


def _task_roles(g: DependencyGraph, prefix: str, managed_policies=()) -> None:
    g.add(
        f"{prefix}ExecutionRole", ResourceKind.ROLE,
        service_principal=ECS_TASKS_PRINCIPAL,
        managed_policies=list(managed_policies),
        pull_from=[Ref(REPOSITORY)],
    )
    g.add(f"{prefix}Role", ResourceKind.ROLE, service_principal=ECS_TASKS_PRINCIPAL)


def _service(g: DependencyGraph, cfg: StackConfig) -> None:
    svc = cfg.service
    _task_roles(g, "PlaceholderTask")
    g.add(
        "PlaceholderLogGroup", ResourceKind.LOG_GROUP,
        retention_days=svc.log_retention_days,
        removal_policy="RETAIN",
    )
    g.add(
        "PlaceholderTaskDef", ResourceKind.TASK_DEFINITION,
        family=f"aws-workshop-app-family-{cfg.resource_suffix}",
        cpu=svc.cpu,
        memory=svc.memory,
        cpu_architecture="ARM64",
        os_family="LINUX",
        execution_role=Ref("PlaceholderTaskExecutionRole", "Arn"),
        task_role=Ref("PlaceholderTaskRole", "Arn"),
        containers=[{
            "name": "PlaceholderContainer",
            "image": svc.image,
            "port_mappings": [{"container_port": svc.container_port, "protocol": "tcp"}],
            "log_group": Ref("PlaceholderLogGroup"),
            "stream_prefix": "ecs-placeholder",
        }],
    )
    g.add(
        "WorkshopFargateService", ResourceKind.SERVICE,
        cluster=Ref(CLUSTER),
        task_definition=Ref("PlaceholderTaskDef"),
        desired_count=svc.desired_count,
        assign_public_ip=False,
        subnets=Ref(VPC, "PrivateSubnetIds"),
        security_groups=[Ref(ECS_SG, "GroupId")],
        target_group=Ref(TARGET_GROUP),
        container_name="PlaceholderContainer",
        container_port=svc.container_port,
        health_check_grace_period=svc.health_check_grace_period,
    )
    g.add_reference(
        "WorkshopFargateService", LISTENER,
        "target group must be attached to a listener before the service registers",
    )
    g.add_output("EcsServiceName", "WorkshopFargateService", "Name", "ECS Service Name")


def _app_task_definition(g: DependencyGraph, cfg: StackConfig) -> None:
    _task_roles(g, "Task", managed_policies=["service-role/AmazonECSTaskExecutionRolePolicy"])
    g.add(
        "TaskDefinitionLogGroup", ResourceKind.LOG_GROUP,
        retention_days=cfg.service.log_retention_days,
        removal_policy="RETAIN",
    )
    g.add(
        "TaskDefinition", ResourceKind.TASK_DEFINITION,
        family="aws-workshop-app-family",
        cpu=1024,
        memory=3072,
        cpu_architecture="ARM64",
        os_family="LINUX",
        execution_role=Ref("TaskExecutionRole", "Arn"),
        task_role=Ref("TaskRole", "Arn"),
        containers=[{
            "name": "WorkshopAppContainer",
            "image": "busybox:latest",
            "port_mappings": [{"container_port": 3000, "protocol": "tcp"}],
            "environment": {"NODE_ENV": "production", "PORT": "3000"},
            "log_group": Ref("TaskDefinitionLogGroup"),
            "stream_prefix": "ecs-workshop-app",
            "command": ["sh", "-c", "while true; do sleep 30; done"],
            "health_check": {
                "command": ["CMD-SHELL", "exit 0"],
                "interval": 30,
                "timeout": 5,
                "start_period": 10,
                "retries": 2,
            },
            "memory_reservation": 64,
            "memory_limit": 128,
            "essential": True,
        }],
    )
    g.add_output("TaskDefinitionArn", "TaskDefinition", "Ref", "ECS Task Definition ARN")
    g.add_output("TaskDefinitionFamily", "TaskDefinition", "Family", "ECS Task Definition Family")


def _description(cfg: StackConfig) -> str:
    parts = [f"Workshop stack ({cfg.profile} profile, identifier {cfg.resource_suffix})"]
    if cfg.account or cfg.region:
        parts.append(f"target {cfg.account or '-'}/{cfg.region or '-'}")
    return ", ".join(parts)


def to_graph(cfg: StackConfig) -> DependencyGraph:
    g = DependencyGraph(cfg.stack_name, description=_description(cfg))
    _network(g, cfg)
    _security_groups(g, cfg)
    _load_balancing(g, cfg)
    if cfg.flags.repository:
        _repository(g, cfg)
    if cfg.flags.cluster:
        _cluster(g, cfg)
    if cfg.flags.service:
        _service(g, cfg)
    if cfg.flags.app_task_definition:
        _app_task_definition(g, cfg)
    return g


def build_plan(cfg: StackConfig) -> Plan:
    return TemplateBackend().emit(to_graph(cfg))
