"""PSP Adapter Dispatcher - Routes to correct PSP based on gateway."""
from typing import Dict, Optional

import httpx

from ..config.settings import Settings
from .adapter import PSPAdapter, PSPProvider
from .cashfree_adapter import CashfreeAdapter, CashfreeConfig
from .stripe_adapter import StripeAdapter, StripeConfig


class PSPDispatcher:
    """
    Selects and initializes the correct PSP adapter.

    One dispatcher is created per application and stored on ``app.state``;
    each adapter is configured once from the injected settings.
    """

    def __init__(self, settings: Settings, cashfree_transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._cashfree_transport = cashfree_transport
        self._adapters: Dict[PSPProvider, PSPAdapter] = {}

    def get_adapter(self, provider: str) -> PSPAdapter:
        """
        Get PSP adapter for the given provider.

        Raises:
            ValueError: If provider is not supported
        """
        try:
            key = PSPProvider((provider or "").lower())
        except ValueError:
            raise ValueError(f"Unsupported PSP provider: {provider}")

        if key not in self._adapters:
            if key == PSPProvider.STRIPE:
                self._adapters[key] = StripeAdapter(StripeConfig.from_settings(self.settings))
            else:
                self._adapters[key] = CashfreeAdapter(
                    CashfreeConfig.from_settings(self.settings),
                    transport=self._cashfree_transport,
                )
        return self._adapters[key]

    @property
    def stripe(self) -> StripeAdapter:
        return self.get_adapter(PSPProvider.STRIPE)  # type: ignore[return-value]

    @property
    def cashfree(self) -> CashfreeAdapter:
        return self.get_adapter(PSPProvider.CASHFREE)  # type: ignore[return-value]
