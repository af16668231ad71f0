"""
Custom application exceptions.

These exceptions represent contract violations by trusted internal callers
(unknown internal ids, illegal status transitions). Expected declines coming
from untrusted or retrying input are never raised; services return them as
ordinary result values instead.
"""
from typing import Optional


class AffiliateEngineError(Exception):
    """Base exception for all engine errors."""

    message: str = "Affiliate engine error"

    def __init__(self, message: Optional[str] = None, **kwargs):
        self.message = message or self.message
        self.details = kwargs
        super().__init__(self.message)


# ============== Lookups ==============

class NotFoundError(AffiliateEngineError):
    """Entity referenced by internal id does not exist."""
    message = "Entity not found"
    entity: str = "entity"

    def __init__(self, entity_id: Optional[int] = None):
        self.entity_id = entity_id
        super().__init__(
            f"{self.entity.capitalize()} #{entity_id} not found" if entity_id else self.message
        )


class AffiliateNotFoundError(NotFoundError):
    """Affiliate not found."""
    message = "Affiliate not found"
    entity = "affiliate"


class CampaignNotFoundError(NotFoundError):
    """Campaign not found."""
    message = "Campaign not found"
    entity = "campaign"


class ReferralNotFoundError(NotFoundError):
    """Referral not found."""
    message = "Referral not found"
    entity = "referral"


class CommissionNotFoundError(NotFoundError):
    """Commission not found."""
    message = "Commission not found"
    entity = "commission"


# ============== Registry ==============

class AffiliateAlreadyExistsError(AffiliateEngineError):
    """User is already registered as an affiliate."""
    message = "User is already an affiliate"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} is already an affiliate")


class DuplicateCampaignSlugError(AffiliateEngineError):
    """Campaign slug is taken."""
    message = "Campaign slug already exists"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f'Campaign with slug "{slug}" already exists')


class DefaultCampaignArchiveError(AffiliateEngineError):
    """The default campaign cannot be archived."""
    message = "Cannot archive the default campaign"


# ============== Status machines ==============

class InvalidStatusTransitionError(AffiliateEngineError):
    """Requested status transition is not allowed from the current status."""
    message = "Invalid status transition"

    def __init__(self, entity: str, current_status: str, target_status: str):
        self.entity = entity
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Cannot move {entity} from '{current_status}' to '{target_status}'"
        )


# ============== Validation ==============

class ValidationError(AffiliateEngineError):
    """Data validation error."""
    message = "Validation error"

    def __init__(self, field: str, error: str):
        self.field = field
        self.error = error
        super().__init__(f"Invalid '{field}': {error}")
