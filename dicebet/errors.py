class DiceBetError(Exception):
    """Base class for rejected operations.

    Every subclass carries the numeric code exposed to clients and the HTTP
    status used when the error crosses the API boundary. Raising one of these
    from an engine function means no state was changed.
    """

    code = 0
    status_code = 400
    default_detail = "Operation rejected."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    @property
    def kind(self) -> str:
        return type(self).__name__


class OwnerOnly(DiceBetError):
    code = 100
    status_code = 403
    default_detail = "Only the contract owner may call this."


class InsufficientBalance(DiceBetError):
    code = 101
    default_detail = "Insufficient balance."


class InvalidBetAmount(DiceBetError):
    code = 102
    default_detail = "Bet amount out of range."


class GameNotFound(DiceBetError):
    code = 103
    status_code = 404
    default_detail = "Game not found."


class InvalidPrediction(DiceBetError):
    code = 104
    default_detail = "Prediction must be between 1 and 6."
