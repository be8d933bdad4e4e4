class MindfulError(Exception):
    def __init__(self, code: str, message: str, http_status: int = 500, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigurationError(MindfulError):
    def __init__(self, message: str):
        super().__init__(code="CONFIGURATION", message=message, http_status=500)


class ProviderError(MindfulError):
    """Anything that went wrong talking to the model backend."""


class ProviderHTTPError(ProviderError):
    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        if status in (401, 403):
            detail = "unauthorized"
        elif status >= 500:
            detail = "server error"
        else:
            detail = "request failed"
        super().__init__(
            code="PROVIDER_HTTP",
            message=f"Provider returned HTTP {status} ({detail}): {body[:500]}",
            http_status=status,
        )


class ProviderNetworkError(ProviderError):
    def __init__(self, message: str):
        super().__init__(code="PROVIDER_NETWORK", message=f"Network connection error: {message}", http_status=502)


class ProviderSafetyError(ProviderError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(code="PROVIDER_SAFETY", message=f"Response blocked by content safety filter: {reason}", http_status=400)


class ProviderResponseError(ProviderError):
    """The provider answered 2xx but the body could not be understood."""

    def __init__(self, message: str):
        super().__init__(code="PROVIDER_RESPONSE", message=message, http_status=502)
