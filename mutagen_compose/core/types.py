from enum import Enum, auto

__all__ = [
    "SessionKind",
    "AddressKind",
]


class SessionKind(Enum):
    """
    Kind of session managed by the daemon. The value is the noun used by the
    daemon's command line.
    """

    FORWARDING = "forward"
    """Network forwarding from a local endpoint to a network endpoint"""

    SYNCHRONIZATION = "sync"
    """Bidirectional file synchronization between a local path and a volume"""

    @property
    def roles(self) -> tuple[str, str]:
        """
        Names of the two endpoint roles, in order.
        """
        if self is SessionKind.FORWARDING:
            return ("source", "destination")
        return ("alpha", "beta")

    @property
    def description(self) -> str:
        return "forwarding" if self is SessionKind.FORWARDING else "synchronization"

    def __str__(self) -> str:
        return self.description


class AddressKind(Enum):
    """
    Classification of a raw endpoint address.
    """

    LOCAL = auto()
    """Local filesystem path or local forwarding endpoint"""

    VOLUME = auto()
    """Reference to a volume declared in the project"""

    NETWORK = auto()
    """Reference to a network declared in the project"""

    REMOTE = auto()
    """Any other protocol (SSH, Docker, ...), which is unsupported"""
