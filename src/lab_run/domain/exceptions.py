"""Exceptions raised by the lab run engine."""


class LabRunError(Exception):
    """Base class for errors surfaced by the lab run engine."""
    pass


class PreconditionViolation(LabRunError):
    """A run request was rejected before any side effect took place."""
    pass


class OrderAlreadyRun(PreconditionViolation):
    def __init__(self, order_id, run_id):
        super().__init__(f"Test order {order_id} already has run_id {run_id}")
        self.order_id = order_id
        self.run_id = run_id


class OrderDeleted(PreconditionViolation):
    def __init__(self, order_id):
        super().__init__(f"Test order {order_id} has been deleted")
        self.order_id = order_id


class NoInstrumentSelected(PreconditionViolation):
    def __init__(self, order_id):
        super().__init__(f"No instrument selected for test order {order_id}")
        self.order_id = order_id


class OrderNotFound(PreconditionViolation):
    def __init__(self, order_id):
        super().__init__(f"Test order {order_id} not found")
        self.order_id = order_id


class InstrumentNotFound(PreconditionViolation):
    def __init__(self, instrument_id):
        super().__init__(f"Instrument {instrument_id} not found")
        self.instrument_id = instrument_id


class ResultCreationFailed(LabRunError):
    """The result record could neither be created nor located."""
    pass


class ResultNotFound(LabRunError):
    def __init__(self, identifier):
        super().__init__(f"Result not found for {identifier}")
        self.identifier = identifier


class ConfirmationRequired(LabRunError):
    """A destructive operation was requested without explicit confirmation."""
    pass


class CommentError(LabRunError):
    pass


class EmptyComment(CommentError):
    def __init__(self):
        super().__init__("Comment cannot be empty")


class CommentNotFound(CommentError):
    def __init__(self, comment_id):
        super().__init__(f"Comment {comment_id} not found")
        self.comment_id = comment_id


class CommentPersistenceError(CommentError):
    """The comment array could not be written back to the result record."""
    pass
