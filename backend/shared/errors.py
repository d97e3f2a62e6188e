"""Error taxonomy shared by the provider clients, gateway and handlers."""


class AnalyzerError(Exception):
    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ProviderError(AnalyzerError):
    """An external provider could not produce a usable payload."""

    def __init__(self, provider: str, message: str, code: str = "PROVIDER_ERROR"):
        self.provider = provider
        super().__init__(f"{provider}: {message}", code=code)


class ProviderUnavailable(ProviderError):
    """Non-2xx response, network failure or timeout."""

    def __init__(self, provider: str, message: str, status: int | None = None):
        self.status = status
        super().__init__(provider, message, code="PROVIDER_UNAVAILABLE")


class MalformedProviderPayload(ProviderError):
    """Unparseable JSON, a missing required field or a zero price."""

    def __init__(self, provider: str, message: str):
        super().__init__(provider, message, code="MALFORMED_PAYLOAD")


class InvalidInputError(AnalyzerError):
    def __init__(self, message: str):
        super().__init__(message, code="INVALID_INPUT")
