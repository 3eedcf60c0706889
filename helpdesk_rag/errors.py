"""Exception taxonomy for the retrieval pipeline."""


class HelpdeskRAGError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(HelpdeskRAGError):
    """Raised when required configuration is missing or invalid."""


class ProviderUnavailableError(HelpdeskRAGError):
    """An embedding or web search provider is unreachable or misconfigured.

    Always recovered locally by a fallback path; never surfaced to the end user.
    """


class MalformedCandidateError(HelpdeskRAGError):
    """A knowledge item carries a corrupt or wrongly sized embedding."""


class KnowledgeStoreUnavailableError(HelpdeskRAGError):
    """The knowledge store cannot be read. No fallback exists for this."""


class GenerationError(HelpdeskRAGError):
    """The answer generator failed to produce a response."""
