"""
Error taxonomy for the custody protocol.

Every error carries a stable ``kind`` that is what the remote party sees.
"""


class MPCWalletError(Exception):
    kind = "MPCWalletError"


class MalformedInput(MPCWalletError, ValueError):
    """
    Bad hex, bad JSON shape, missing index. Raised before any arithmetic.
    A ValueError as well, so message validators can raise it directly.
    """
    kind = "MalformedInput"


class MissingCommitments(MalformedInput):
    """A share arrived before the sender's commitment set."""
    kind = "MissingCommitments"


class InvalidShare(MPCWalletError):
    """Feldman verification failed. The receiving session is aborted."""
    kind = "InvalidShare"


class IncompleteContribution(MPCWalletError):
    kind = "IncompleteContribution"


class AlreadyFinalized(MPCWalletError):
    kind = "AlreadyFinalized"


class SessionAborted(MPCWalletError):
    kind = "SessionAborted"


class ProtocolViolation(MPCWalletError):
    """A message or call that is not allowed in the current session state."""
    kind = "ProtocolViolation"


class AddressMismatch(MPCWalletError):
    kind = "AddressMismatch"


class ShareNotFound(MPCWalletError):
    kind = "ShareNotFound"
