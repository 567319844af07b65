# redirect_service/config.py

import os

from pydantic import BaseModel


class Settings(BaseModel):
    supabase_url: str | None = None
    supabase_key: str | None = None
    # None means "use the HTTP client's default", which for requests is no timeout
    datastore_timeout: float | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Reads the datastore connection details from environment variables.
        Missing values are kept as None so each request can report the problem
        instead of the whole service refusing to start.
        """
        timeout = os.getenv("DATASTORE_TIMEOUT")
        return cls(
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
            datastore_timeout=float(timeout) if timeout else None,
        )


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
