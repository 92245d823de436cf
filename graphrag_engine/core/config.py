"""
Configuration module for graphrag-engine.

Uses pydantic-settings for environment-based configuration. Every field
can be set through a GRAPHRAG_-prefixed environment variable or a .env
file; per-call SearchOptions override the retrieval defaults without
mutating them.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from graphrag_engine.search.models import FusionStrategy, RerankStrategy, SearchMode


class RetrieverSettings(BaseSettings):
    """
    Retriever settings loaded from environment variables.

    Instances are frozen: a retriever's defaults never change after
    construction.
    """

    model_config = SettingsConfigDict(
        env_prefix="GRAPHRAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # ===========================================
    # RETRIEVAL DEFAULTS
    # ===========================================
    top_k: int = Field(default=10, ge=1, description="Documents returned per search")
    vector_weight: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Vector score weight for weighted fusion",
    )
    graph_weight: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Graph score weight for weighted fusion",
    )
    max_traverse_depth: int = Field(default=2, ge=1, description="Hops expanded per entity")
    search_mode: SearchMode = Field(default=SearchMode.HYBRID, description="hybrid / vector / graph")
    fusion_strategy: FusionStrategy = Field(
        default=FusionStrategy.WEIGHTED,
        description="weighted / rrf / max / min",
    )
    rerank_strategy: RerankStrategy = Field(
        default=RerankStrategy.SCORE,
        description="score / diversity / mmr",
    )
    enable_context_augmentation: bool = Field(
        default=True,
        description="Attach graph context to returned documents",
    )
    min_score: float = Field(default=0.0, ge=0.0, description="Post-fusion score floor")
    mmr_lambda: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="MMR relevance/diversity trade-off",
    )
    rrf_constant: float = Field(default=60.0, gt=0.0, description="k constant for RRF")

    # ===========================================
    # CONCURRENCY
    # ===========================================
    traversal_concurrency: int = Field(
        default=4,
        ge=1,
        description="Concurrent per-entity graph traversals",
    )
    search_timeout: float | None = Field(
        default=None,
        gt=0.0,
        description="Overall deadline for one search call, in seconds",
    )

    # ===========================================
    # LOGGING
    # ===========================================
    structured_logging: bool = Field(
        default=False,
        description="Attach JSON log handlers to the package logger on construction",
    )
    log_file: str | None = Field(default=None, description="Optional rotating JSON log file")

    # ===========================================
    # NEO4J CONFIGURATION
    # ===========================================
    neo4j_uri: str = Field(default="bolt://localhost:7687", description="Neo4j Bolt URI")
    neo4j_user: str = Field(default="neo4j", description="Neo4j username")
    neo4j_password: str = Field(default="devpassword", description="Neo4j password")
    neo4j_database: str = Field(default="neo4j", description="Neo4j database name")

    # ===========================================
    # QDRANT CONFIGURATION
    # ===========================================
    qdrant_url: str = Field(default="http://localhost:6333", description="Qdrant REST API URL")
    qdrant_collection: str = Field(default="documents", description="Qdrant collection")
    qdrant_api_key: str | None = Field(default=None, description="Qdrant API key")


@lru_cache
def get_settings() -> RetrieverSettings:
    """Get cached settings instance."""
    return RetrieverSettings()
