"""Default plan catalog."""

from decimal import Decimal

from planwise.billing.catalog.models import Plan, PlanFeature
from planwise.billing.core.enums import PlanType

# Metered resource names shared by plan features and usage counters
PROJECTS = "projects"
STORAGE = "storage"  # GB
TEAM_MEMBERS = "teamMembers"
API_REQUESTS = "apiRequests"  # per day

SUPPORT = "support"
ADVANCED_SECURITY = "advancedSecurity"

METERED_RESOURCES = (PROJECTS, STORAGE, TEAM_MEMBERS, API_REQUESTS)


def default_plans(currency: str = "USD") -> list[Plan]:
    """Free, Basic, Premium and Enterprise tiers priced in ``currency``."""
    return [
        Plan(
            plan_id="free",
            plan_type=PlanType.FREE,
            name="Free",
            description="Basic features for individuals",
            monthly_price=Decimal("0"),
            annual_price=Decimal("0"),
            currency=currency,
            features=(
                PlanFeature(
                    name=PROJECTS, description="Up to 3 projects", included=True, limit="3"
                ),
                PlanFeature(
                    name=STORAGE, description="Up to 1GB storage", included=True, limit="1"
                ),
                PlanFeature(
                    name=TEAM_MEMBERS,
                    description="Collaborate with up to 2 team members",
                    included=True,
                    limit="2",
                ),
                PlanFeature(name=API_REQUESTS, description="API access", included=False),
                PlanFeature(name=SUPPORT, description="Community support", included=True),
                PlanFeature(
                    name=ADVANCED_SECURITY, description="Advanced security", included=False
                ),
            ),
        ),
        Plan(
            plan_id="basic",
            plan_type=PlanType.BASIC,
            name="Basic",
            description="For small teams and professionals",
            monthly_price=Decimal("9.99"),
            annual_price=Decimal("99.99"),
            currency=currency,
            features=(
                PlanFeature(
                    name=PROJECTS, description="Up to 10 projects", included=True, limit="10"
                ),
                PlanFeature(
                    name=STORAGE, description="Up to 10GB storage", included=True, limit="10"
                ),
                PlanFeature(
                    name=TEAM_MEMBERS,
                    description="Collaborate with up to 5 team members",
                    included=True,
                    limit="5",
                ),
                PlanFeature(
                    name=API_REQUESTS,
                    description="1,000 API requests per day",
                    included=True,
                    limit="1000",
                ),
                PlanFeature(name=SUPPORT, description="Email support", included=True),
                PlanFeature(
                    name=ADVANCED_SECURITY, description="Advanced security", included=False
                ),
            ),
            is_popular=True,
        ),
        Plan(
            plan_id="premium",
            plan_type=PlanType.PREMIUM,
            name="Premium",
            description="For growing businesses and teams",
            monthly_price=Decimal("29.99"),
            annual_price=Decimal("299.99"),
            currency=currency,
            features=(
                PlanFeature(
                    name=PROJECTS,
                    description="Unlimited projects",
                    included=True,
                    limit="unlimited",
                ),
                PlanFeature(
                    name=STORAGE, description="Up to 100GB storage", included=True, limit="100"
                ),
                PlanFeature(
                    name=TEAM_MEMBERS,
                    description="Collaborate with up to 20 team members",
                    included=True,
                    limit="20",
                ),
                PlanFeature(
                    name=API_REQUESTS,
                    description="10,000 API requests per day",
                    included=True,
                    limit="10000",
                ),
                PlanFeature(
                    name=SUPPORT, description="Priority email and chat support", included=True
                ),
                PlanFeature(name=ADVANCED_SECURITY, description="Advanced security", included=True),
            ),
        ),
        Plan(
            plan_id="enterprise",
            plan_type=PlanType.ENTERPRISE,
            name="Enterprise",
            description="For large organizations with advanced needs",
            monthly_price=Decimal("99.99"),
            annual_price=Decimal("999.99"),
            currency=currency,
            setup_fee=Decimal("199.00"),
            features=(
                PlanFeature(
                    name=PROJECTS,
                    description="Unlimited projects",
                    included=True,
                    limit="unlimited",
                ),
                PlanFeature(
                    name=STORAGE, description="Unlimited storage", included=True, limit="unlimited"
                ),
                PlanFeature(
                    name=TEAM_MEMBERS,
                    description="Unlimited team members",
                    included=True,
                    limit="unlimited",
                ),
                PlanFeature(
                    name=API_REQUESTS,
                    description="Unlimited API access",
                    included=True,
                    limit="unlimited",
                ),
                PlanFeature(
                    name=SUPPORT,
                    description="Dedicated account manager and 24/7 support",
                    included=True,
                ),
                PlanFeature(
                    name=ADVANCED_SECURITY,
                    description="Advanced security with custom configurations",
                    included=True,
                ),
            ),
        ),
    ]
