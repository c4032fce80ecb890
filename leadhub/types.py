"""Enums and type aliases for LeadHub."""

from enum import StrEnum


class PolicyMode(StrEnum):
    """What a company fundamentally does with leads."""

    UPLOADER = "uploader"
    RECEIVER = "receiver"
    HYBRID = "hybrid"


class MembershipRole(StrEnum):
    SUPER_TENANT_ADMIN = "superadmin"
    TENANT_ADMIN = "admin"
    LEAD_OPERATOR = "lead_operator"
    FB_SUBMITTER = "fb_submitter"
    FB_ANALYTICS_VIEWER = "fb_analytics_viewer"


class Capability(StrEnum):
    UPLOAD_LEADS = "upload_leads"
    RECEIVE_LEADS = "receive_leads"
    DISTRIBUTE_LEADS = "distribute_leads"
    DISTRIBUTE_IDENTIFIERS = "distribute_identifiers"
    CREATE_USER = "create_user"


class RequirementKind(StrEnum):
    TENANT_ADMIN_OR = "tenant_admin_or"
    FLAG_ONLY = "flag_only"


class CompanyScope(StrEnum):
    OWN = "own"
    GLOBAL = "global"


class DenialReason(StrEnum):
    NO_MEMBERSHIP = "no_membership"
    MISSING_GRANT = "missing_grant"
    NO_ACTIVE_TENANT = "no_active_tenant"


ADMIN_ROLES = frozenset({MembershipRole.SUPER_TENANT_ADMIN, MembershipRole.TENANT_ADMIN})

# Roles eligible for one-time login links
NARROW_ROLES = frozenset(
    {
        MembershipRole.LEAD_OPERATOR,
        MembershipRole.FB_SUBMITTER,
        MembershipRole.FB_ANALYTICS_VIEWER,
    }
)
