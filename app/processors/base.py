from abc import ABC, abstractmethod
from typing import Dict, Mapping


class BaseProcessor(ABC):
    """Abstract base for hosted-checkout payment processors."""

    @property
    @abstractmethod
    def processor_name(self) -> str:
        pass

    @property
    @abstractmethod
    def action_url(self) -> str:
        """Endpoint the customer's browser POSTs the checkout fields to."""
        pass

    @abstractmethod
    def build_checkout_fields(self, **kwargs) -> Dict[str, str]:
        """
        Build the unsigned field map for a hosted-checkout form.
        Concrete processors define their own keyword arguments.
        """
        pass

    @abstractmethod
    def sign(self, fields: Mapping[str, str]) -> Dict[str, str]:
        """Return a copy of fields with the processor signature attached."""
        pass

    @abstractmethod
    def verify_callback(self, payload: Mapping[str, str]) -> bool:
        """True when the callback payload carries a valid signature."""
        pass

    @abstractmethod
    def is_approved(self, payload: Mapping[str, str]) -> bool:
        """True when the callback reports an approved payment."""
        pass
