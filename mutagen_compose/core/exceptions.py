__all__ = [
    "MutagenComposeError",
    "ValidationError",
    "InvalidEndpoint",
    "UnsupportedTransport",
    "ExpectedNetworkEndpoint",
    "UnsupportedProtocol",
    "AmbiguousVolumeRole",
    "PathResolutionFailed",
    "IllegalFieldForRole",
    "DefaultsMustNotDeclareEndpoints",
    "InvalidSessionName",
    "UndefinedDependency",
    "SidecarNameConflict",
    "ExtensionDecodeError",
    "CollaboratorError",
    "MetadataUnavailable",
    "DaemonError",
]


class MutagenComposeError(Exception):
    """
    Base class of all errors raised by this package.
    """


class ValidationError(MutagenComposeError):
    """
    Raised when the project or its `x-mutagen` section is invalid. Always
    raised before any interaction with the session daemon.
    """


class InvalidEndpoint(ValidationError):
    """
    Raised when an endpoint address can't be parsed or isn't allowed in the
    role it's used in.
    """


class UnsupportedTransport(InvalidEndpoint):
    """
    Raised when a forwarding endpoint isn't TCP-based.
    """


class ExpectedNetworkEndpoint(InvalidEndpoint):
    """
    Raised when a forwarding destination isn't a network address.
    """


class UnsupportedProtocol(InvalidEndpoint):
    """
    Raised when an endpoint uses a protocol other than local, volume or
    network.
    """


class AmbiguousVolumeRole(InvalidEndpoint):
    """
    Raised when a synchronization session doesn't have exactly one volume
    endpoint.
    """


class PathResolutionFailed(InvalidEndpoint):
    """
    Raised when a local path can't be made absolute.
    """


class IllegalFieldForRole(ValidationError):
    """
    Raised when a configuration field appears in a block where it isn't
    allowed, e.g. a session-wide field in an endpoint-specific block.
    """

    field: str

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class DefaultsMustNotDeclareEndpoints(ValidationError):
    """
    Raised when a `defaults` entry declares endpoint addresses.
    """


class InvalidSessionName(ValidationError):
    """
    Raised when a session name doesn't match the naming grammar.
    """


class UndefinedDependency(ValidationError):
    """
    Raised when a session references a network or volume which the project
    doesn't declare.
    """


class SidecarNameConflict(ValidationError):
    """
    Raised when the project already defines a service with the sidecar's name.
    """


class ExtensionDecodeError(ValidationError):
    """
    Raised when the `x-mutagen` section can't be decoded, including when it
    contains unknown keys.
    """


class CollaboratorError(MutagenComposeError):
    """
    Raised when a call to the container engine or orchestrator fails.
    """

    operation: str

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class MetadataUnavailable(CollaboratorError):
    """
    Raised when the container engine's platform metadata can't be queried.
    """

    def __init__(self, message: str):
        super().__init__("query engine metadata", message)


class DaemonError(MutagenComposeError):
    """
    Raised when an operation against the session daemon fails. Carries the
    operation, the reconciliation phase and, where applicable, the name of
    the session involved.
    """

    operation: str
    message: str
    session: str | None
    phase: str | None

    def __init__(
        self,
        operation: str,
        message: str,
        *,
        session: str | None = None,
        phase: str | None = None,
    ):
        self.operation = operation
        self.message = message
        self.session = session
        self.phase = phase

        subject = f" ({session})" if session else ""
        super().__init__(f"{operation}{subject} failed: {message}")
