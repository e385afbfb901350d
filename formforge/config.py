"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Knowledge base ("memory" or "supabase")
    vector_backend: str = "memory"
    documents_table: str = "documents"
    documents_query_name: str = "match_documents"
    plans_table: str = "workout_plans"

    # Model provider
    google_api_key: Optional[str] = None
    chat_model: str = "gemini-2.0-flash"
    embedding_model: str = "models/text-embedding-004"
    chat_temperature: float = 0.2
    chat_max_output_tokens: int = 3000

    # Uploads
    upload_dir: str = "uploads"
    max_upload_bytes: int = 10 * 1024 * 1024
    upload_read_chunk_bytes: int = 1024 * 1024

    # Ingestion
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # Generation
    default_top_k: int = 8
    retrieval_overfetch: int = 5

    # Job retention
    upload_retention_seconds: float = 3600
    generation_retention_seconds: float = 3600

    # Server
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
