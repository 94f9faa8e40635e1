"""Exception hierarchy for kubepilot.

Every failure is local to the single operation that raised it. The HTTP
layer maps these to status codes in app.py.
"""


class KubePilotError(Exception):
    """Base exception for kubepilot errors."""
    pass


# --- AI provider gateway ---

class ProviderError(KubePilotError):
    """Base exception for AI provider failures."""
    pass


class ProviderUnavailable(ProviderError):
    """Raised when the backend cannot be reached or returns an error."""
    pass


class ProviderNotImplemented(ProviderError):
    """Raised when a backend does not support the requested operation."""
    pass


class MissingCredential(ProviderError):
    """Raised when a backend needs an API key that was not configured."""
    pass


class UnsupportedProvider(ProviderError):
    """Raised when an unknown provider identifier is selected."""
    pass


# --- Plan generation ---

class GenerationFailed(KubePilotError):
    """Raised when no plan could be produced; the provider error is chained."""
    pass


# --- Resources / diagnostics ---

class UnsupportedResource(KubePilotError):
    """Raised when no inspector exists for a resource kind."""
    pass


class ResourceNotFound(KubePilotError):
    """Raised when the requested resource does not exist."""
    pass


class ResourceQueryError(KubePilotError):
    """Raised when the cluster API call itself fails."""
    pass


# --- Extension registry ---

class PluginError(KubePilotError):
    """Base exception for extension registry failures."""
    pass


class PluginAlreadyRegistered(PluginError):
    pass


class PluginNotFound(PluginError):
    pass


class UnknownPlugin(PluginError):
    """Raised by install_by_name for a name with no builtin analyzer."""
    pass
