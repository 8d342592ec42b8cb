# Services Package (external collaborators + stores)
from .interfaces import (
    DocumentTextExtractor,
    TextGenerationProvider,
    JobContentFetcher,
    DocumentRenderer,
    BlobStore,
    SessionStore,
)
from .document_extractor import PlumberDocxTextExtractor
from .llm_provider import OpenAITextProvider
from .job_fetcher import HttpJobContentFetcher
from .document_renderer import DocxDocumentRenderer
from .blob_store import InMemoryBlobStore, SupabaseBlobStore
from .session_store import InMemorySessionStore, SupabaseSessionStore
from .metrics_service import MetricsCollector, PipelineMetrics, AggregatedMetrics

__all__ = [
    # Interfaces
    "DocumentTextExtractor",
    "TextGenerationProvider",
    "JobContentFetcher",
    "DocumentRenderer",
    "BlobStore",
    "SessionStore",
    # Adapters
    "PlumberDocxTextExtractor",
    "OpenAITextProvider",
    "HttpJobContentFetcher",
    "DocxDocumentRenderer",
    "InMemoryBlobStore",
    "SupabaseBlobStore",
    "InMemorySessionStore",
    "SupabaseSessionStore",
    # Metrics
    "MetricsCollector",
    "PipelineMetrics",
    "AggregatedMetrics",
]
