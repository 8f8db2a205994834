"""Exception types raised by btool."""


class BtoolError(Exception):
    """Base class for all errors reported by btool."""


class ObjectNotFoundError(BtoolError):
    """Raised when an object hash is not present in the pack index."""

    def __init__(self, object_hash: str) -> None:
        super().__init__(f"object with hash {object_hash} not found in index")
        self.object_hash = object_hash


class SnapNotFoundError(BtoolError):
    """Raised when a snapshot identifier does not resolve to a snapshot."""