"""Service-role Supabase client for the vector and plan tables."""

from supabase import Client, create_client

from formforge.config import Settings


def create_supabase(settings: Settings) -> Client:
    """Build a client from the given settings. One per service container."""
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise RuntimeError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set when vector_backend is 'supabase'"
        )
    return create_client(settings.supabase_url, settings.supabase_service_role_key)
