"""Capability resolution and active-tenant selection."""

from leadhub.policy.guard import (
    AccessDecision,
    Requirement,
    can_act_on_any_company,
    can_act_on_company,
    check_company_access,
    is_super_tenant_admin,
)
from leadhub.policy.hydrator import PolicyHydrator
from leadhub.policy.resolver import coerce_policy_mode, resolve
from leadhub.policy.scope import filter_companies, visible_companies
from leadhub.policy.selector import select_active_company
from leadhub.policy.snapshot import MembershipView, SessionPolicySnapshot

__all__ = [
    "AccessDecision",
    "MembershipView",
    "PolicyHydrator",
    "Requirement",
    "SessionPolicySnapshot",
    "can_act_on_any_company",
    "can_act_on_company",
    "check_company_access",
    "coerce_policy_mode",
    "filter_companies",
    "is_super_tenant_admin",
    "resolve",
    "select_active_company",
    "visible_companies",
]
