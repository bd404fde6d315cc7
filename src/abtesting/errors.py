"""Error types raised by the A/B testing core."""


class ConfigurationError(ValueError):
    """Experiment definitions are invalid. Raised at load time, never per request."""


class ValidationError(ValueError):
    """A single ingested event is malformed and was rejected."""
