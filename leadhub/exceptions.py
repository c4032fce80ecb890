"""Exception hierarchy for LeadHub."""


class LeadHubError(Exception):
    """Base exception for all LeadHub errors."""


class ActorNotFound(LeadHubError):
    """Raised when a user id does not resolve to an active user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Actor not found: {user_id}")
        self.user_id = user_id


class StoreUnavailable(LeadHubError):
    """Raised when the membership/company store cannot be read."""


class TenantMismatch(LeadHubError):
    """Raised when an explicit company switch names a company the actor is not a member of."""

    def __init__(self, user_id: str | None, company_id: str) -> None:
        super().__init__(f"No membership in company {company_id}")
        self.user_id = user_id
        self.company_id = company_id


class StorageError(LeadHubError):
    """Raised when a store write is rejected."""


class DistributionServiceError(LeadHubError):
    """Raised when the external distribution engine cannot be reached."""


class ConfigError(LeadHubError):
    """Raised when configuration is invalid."""
