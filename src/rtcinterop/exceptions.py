from typing import Optional


class InteropError(Exception):
    pass


class EndpointError(InteropError):
    """
    An endpoint rejected or failed a negotiation step.
    """


class NegotiationError(InteropError):
    """
    The negotiation sequence was aborted.

    :param state: The name of the state the sequence was in when it failed.
    """

    def __init__(self, message: str, state: Optional[str] = None) -> None:
        super().__init__(message)
        self.state = state
