"""Kernel error types."""


class TautError(Exception):
    """Base error for Taut."""


class ConfigError(TautError):
    """Raised when configuration parsing or validation fails."""


class PluginError(TautError):
    """Raised when plugin loading or validation fails."""


class BundleError(PluginError):
    """Raised when a plugin source cannot be turned into a module."""


class ChannelError(TautError):
    """Raised when a cross-process message cannot be delivered or answered."""


class ExportNotFoundError(TautError, LookupError):
    """Raised when a single-match lookup in the export index finds nothing."""


class ConfigValidationError(ConfigError):
    """Raised when config.jsonc parses but has the wrong shape."""

    def __init__(self, issues: list) -> None:
        self.issues = list(issues)
        super().__init__("invalid config: " + "; ".join(issue.describe() for issue in self.issues))
