"""Domain-specific exceptions for the Architect API."""


class ArchitectAPIError(Exception):
    """Base exception for all Architect API errors."""


class NotFoundError(ArchitectAPIError):
    """Requested session, message or architecture does not exist."""


class ValidationError(ArchitectAPIError):
    """Error related to input validation (not Pydantic)."""


class UnknownServiceError(ValidationError):
    """Service name is not present in the pricing table."""

    def __init__(self, service: str) -> None:
        super().__init__(f"Service {service} not found in pricing data")
        self.service = service


class UnknownConfigurationError(ValidationError):
    """Configuration key is not offered for a priced service."""

    def __init__(self, service: str, configuration: str) -> None:
        super().__init__(f"Configuration {configuration} not found for service {service}")
        self.service = service
        self.configuration = configuration


class UpstreamModelError(ArchitectAPIError):
    """The language model call failed or returned unusable content."""


class LLMProviderError(UpstreamModelError):
    """Error related to LLM provider operations."""


class NoResponseError(UpstreamModelError):
    """The model returned empty content."""


class MalformedJSONError(UpstreamModelError):
    """No parseable JSON object could be extracted from the model reply."""


class InvalidStructureError(UpstreamModelError):
    """The model reply parsed but lacks required recommendation fields."""


class PersistenceError(ArchitectAPIError):
    """Error related to storage operations."""


class ConfigurationError(ArchitectAPIError):
    """Error related to configuration issues."""
