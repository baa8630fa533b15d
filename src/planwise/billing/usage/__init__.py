"""Resource usage metering against plan quotas."""

from planwise.billing.usage.limits import UNLIMITED, parse_resource_limit

__all__ = ["UNLIMITED", "parse_resource_limit"]
