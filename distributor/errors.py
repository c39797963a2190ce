class InvalidClaim(Exception):
    """Raise if a claim cannot be canonically encoded (bad address, negative or oversized value)"""

    pass


class DuplicateIndex(Exception):
    """Raise if two claims in one distribution share an index"""

    pass


class DuplicateAccount(Exception):
    """Raise if two claims in one distribution share an account"""

    pass


class CorruptDocument(Exception):
    """Raise if a serialized distribution is truncated or structurally damaged"""

    pass


class RootMismatch(Exception):
    """Raise if a recomputed merkle root disagrees with the expected one"""

    pass


class UnknownClaimant(Exception):
    """Raise if a redemption references an account that is not in the claim set"""

    pass


class BadConfigException(Exception):
    pass


class MissingEnvironmentVariableException(Exception):
    pass


class MissingDistributionException(Exception):
    pass


class DistributionExistsError(Exception):
    """Raise if a distribution id has already been written to the store"""

    pass


class StoreTimeoutError(Exception):
    """Raise if the store could not be locked in time. The operation may be retried."""

    pass
