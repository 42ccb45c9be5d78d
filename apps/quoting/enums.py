from django.db import models


class ValueType(models.TextChoices):
    """
    Value types a quote column can hold
    """

    TEXT = "text", "Text"
    NUMBER = "number", "Number"
    DATE = "date", "Date"


class CalculationType(models.TextChoices):
    """
    Column-level reductions offered in the summary panel
    """

    NONE = "none", "None"
    SUM = "sum", "Sum"
    AVERAGE = "average", "Average"
    MIN = "min", "Minimum"
    MAX = "max", "Maximum"
    CUSTOM = "custom", "Custom formula"


class DateFormat(models.TextChoices):
    SINGLE = "single", "Single date"
    RANGE = "range", "Date range"


class PasteMode(models.TextChoices):
    """
    How a pasted table is merged into a section
    """

    REPLACE = "replace", "Replace"
    ADD_ROWS = "add-rows", "Add rows"
    ADD_COLUMNS = "add-columns", "Add columns"


class MoveDirection(models.TextChoices):
    LEFT = "left", "Left"
    RIGHT = "right", "Right"
