from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from postgrest.exceptions import APIError
from supabase import Client, create_client

from ..config.settings import SupabaseSettings
from ..errors import StoreError

logger = logging.getLogger(__name__)


class SupabaseNotInitializedError(StoreError):
    """Raised when the Supabase back end is used without URL or anon key."""


@dataclass
class SupabaseGateway:
    """Thin wrapper around the Supabase Python client."""

    settings: SupabaseSettings
    _client: Optional[Client] = None

    def ensure_client(self) -> Client:
        if self._client is not None:
            return self._client
        if not self.settings.is_configured:
            missing = ", ".join(self.settings.missing_env_vars)
            raise SupabaseNotInitializedError(f"Supabase settings are missing: {missing}.")
        self._client = create_client(self.settings.url, self.settings.anon_key)
        return self._client

    def table(self, name: str):
        return self.ensure_client().table(name)

    def execute(self, query: Any, operation: str) -> list[dict[str, Any]]:
        """Run a query builder and return its rows, translating API errors."""

        try:
            response = query.execute()
        except APIError as exc:
            logger.error("Supabase %s failed: %s", operation, exc)
            raise StoreError(f"Supabase {operation} failed: {exc}") from exc
        return response.data or []
