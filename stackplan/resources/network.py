from __future__ import annotations

from typing import Any, Dict, List

from ..ir import Ref
from ..registry import register
from ._shared import props

ANY_IPV4 = "0.0.0.0/0"


@register("Network")
def render_network(node):
    a = node.attributes
    subnets: List[Dict[str, Any]] = [
        {
            "Name": s["name"],
            "CidrMask": s.get("cidr_mask", 24),
            "SubnetType": s["type"],
        }
        for s in a.get("subnets", [])
    ]
    return "AWS::EC2::VPC", props([
        ("CidrBlock", a["cidr"]),
        ("EnableDnsHostnames", a.get("enable_dns_hostnames", True)),
        ("EnableDnsSupport", a.get("enable_dns_support", True)),
        ("MaxAzs", a.get("max_azs")),
        ("SubnetConfiguration", subnets or None),
        ("Tags", [{"Key": "Name", "Value": node.id}]),
    ])


def _ingress_rule(rule: Dict[str, Any]) -> Dict[str, Any]:
    peer = rule.get("peer", ANY_IPV4)
    port = rule["port"]
    out = props([
        ("IpProtocol", rule.get("protocol", "tcp")),
        ("FromPort", port),
        ("ToPort", port),
    ])
    if isinstance(peer, Ref):
        out.update(props([("SourceSecurityGroupId", peer)]))
    else:
        out["CidrIp"] = peer
    if rule.get("description"):
        out["Description"] = rule["description"]
    return out


@register("SecurityGroup")
def render_security_group(node):
    a = node.attributes
    egress = None
    if a.get("allow_all_outbound", True):
        egress = [{
            "CidrIp": ANY_IPV4,
            "Description": "Allow all outbound traffic by default",
            "IpProtocol": "-1",
        }]
    return "AWS::EC2::SecurityGroup", props([
        ("GroupDescription", a.get("description", node.id)),
        ("VpcId", a["vpc"]),
        ("SecurityGroupIngress", [_ingress_rule(r) for r in a.get("ingress", [])] or None),
        ("SecurityGroupEgress", egress),
    ])
