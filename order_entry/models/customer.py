"""Customer model."""
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

WALKIN_FIRST_NAME = 'Walk-in'
WALKIN_LAST_NAME = 'Customer'
WALKIN_EMAIL_DOMAIN = 'urutirose.com'


class Customer(BaseModel):
    """Customer (cliente) as returned by the backend."""
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    id: Optional[int] = None
    first_name: str = Field('', validation_alias=AliasChoices('first_name', 'firstName'))
    last_name: str = Field('', validation_alias=AliasChoices('last_name', 'lastName'))
    email: Optional[str] = None
    phone: Optional[str] = None
    loyalty_tier: Optional[str] = None
    loyalty_points: int = 0
    # Set once when the POS synthesizes the record; older records rely on pattern detection
    is_walk_in: bool = False

    @field_validator('first_name', 'last_name', mode='before')
    @classmethod
    def _blank_names(cls, value):
        return value or ''

    @field_validator('loyalty_points', mode='before')
    @classmethod
    def _points_or_zero(cls, value):
        return value or 0

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.full_name}', is_walk_in={self.is_walk_in})>"


def is_walk_in_customer(customer: Optional[Customer], email_domain: str = WALKIN_EMAIL_DOMAIN) -> bool:
    """
    Tell whether a customer is the walk-in placeholder.

    The explicit flag wins; records created before the flag existed are
    recognised by the placeholder name or the generated email pattern.
    """
    if customer is None:
        return False
    if customer.is_walk_in:
        return True
    if customer.first_name == WALKIN_FIRST_NAME and customer.last_name == WALKIN_LAST_NAME:
        return True
    email = customer.email or ''
    return email.startswith('walkin') and email.endswith(f'@{email_domain}')
