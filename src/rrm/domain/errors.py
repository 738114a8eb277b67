class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(AppError):
    pass


class StoreError(AppError):
    """The store rejected or failed a call. The message is the store's own text."""


class PartialWriteError(StoreError):
    def __init__(self, message: str, product_id: int | str, step: str):
        super().__init__(message)
        self.product_id = product_id
        self.step = step
