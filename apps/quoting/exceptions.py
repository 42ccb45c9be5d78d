class QuoteEngineError(Exception):
    """Base class for every error raised by the quote engine."""


class FormulaError(QuoteEngineError):
    """Raised when an arithmetic expression cannot be evaluated to a finite number.

    Args:
        message: What went wrong.
        expression: The expression text after substitution, when available.
    """

    def __init__(self, message, expression=None):
        self.expression = expression
        super().__init__(message)


class SchemaEditError(QuoteEngineError):
    """Raised when a column schema edit is refused."""


class ColumnNotFoundError(SchemaEditError):
    def __init__(self, column_id):
        self.column_id = column_id
        super().__init__(f"Column {column_id!r} does not exist in this quote")


class ReservedColumnError(SchemaEditError):
    """Raised on attempts to remove or retype the description / unit price columns.

    Args:
        column_id: The reserved column that was targeted.
        action: The refused action, such as "delete".
    """

    def __init__(self, column_id, action):
        self.column_id = column_id
        self.action = action
        super().__init__(f"Cannot {action} reserved column {column_id!r}")


class InvalidColumnError(SchemaEditError):
    """Raised when a column definition is malformed."""


class TableImportError(QuoteEngineError):
    """Raised when pasted text cannot be turned into a table."""
