"""
Quote Engine Serializers

DRF serializers validating the JSON bodies of the quote engine endpoints.
Field names follow the dashboard's camelCase payloads; validated data is fed
straight into ``Quote.from_dict``.
"""

from rest_framework import serializers

from apps.quoting.enums import (
    CalculationType,
    DateFormat,
    MoveDirection,
    PasteMode,
    ValueType,
)

COLUMN_ACTIONS = ("add", "edit", "delete", "move", "calculation")


class CalculationSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=CalculationType.choices)
    formula = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ColumnSerializer(serializers.Serializer):
    """Serializer for one column of the quote schema"""

    id = serializers.CharField()
    name = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=ValueType.choices, default=ValueType.TEXT)
    calculation = CalculationSerializer(required=False, allow_null=True)
    rowFormula = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    dateFormat = serializers.ChoiceField(
        choices=DateFormat.choices, required=False, allow_null=True
    )


class ItemSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    # Browser floats (0.1 + 0.2) arrive as is; Item.from_dict coerces them
    unitPrice = serializers.FloatField(required=False, allow_null=True, default=0)
    customFields = serializers.DictField(required=False, default=dict)


class SectionSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True)
    name = serializers.CharField(required=False, allow_blank=True, default="")
    items = ItemSerializer(many=True, required=False, default=list)


class QuoteSerializer(serializers.Serializer):
    """Serializer for a whole quote as the dashboard stores it"""

    id = serializers.CharField(required=False, allow_blank=True, default="")
    columns = ColumnSerializer(many=True, required=False, default=list)
    sections = SectionSerializer(many=True, required=False, default=list)
    grandTotalFormula = serializers.CharField(
        required=False, allow_blank=True, allow_null=True
    )


class RecomputeRequestSerializer(serializers.Serializer):
    quote = QuoteSerializer()
    grandTotalFormula = serializers.CharField(
        required=False, allow_blank=True, allow_null=True
    )
    collaboratorQuotes = QuoteSerializer(many=True, required=False, default=list)


class ColumnActionSerializer(serializers.Serializer):
    """
    Serializer for a schema edit request.

    Which fields are required depends on ``action``:
    - add: name, type (calculation, rowFormula, dateFormat optional)
    - edit: column
    - delete: columnId
    - move: index, direction
    - calculation: columnId, calculation
    """

    quote = QuoteSerializer()
    action = serializers.ChoiceField(choices=COLUMN_ACTIONS)
    name = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=ValueType.choices, required=False)
    calculation = CalculationSerializer(required=False, allow_null=True)
    rowFormula = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    dateFormat = serializers.ChoiceField(
        choices=DateFormat.choices, required=False, allow_null=True
    )
    column = ColumnSerializer(required=False)
    columnId = serializers.CharField(required=False)
    index = serializers.IntegerField(required=False)
    direction = serializers.ChoiceField(choices=MoveDirection.choices, required=False)

    REQUIRED_FIELDS = {
        "add": ("name", "type"),
        "edit": ("column",),
        "delete": ("columnId",),
        "move": ("index", "direction"),
        "calculation": ("columnId", "calculation"),
    }

    def validate(self, attrs):
        missing = [
            field_name
            for field_name in self.REQUIRED_FIELDS[attrs["action"]]
            if field_name not in attrs
        ]
        if missing:
            raise serializers.ValidationError(
                {field_name: "This field is required." for field_name in missing}
            )
        return attrs


class PastePreviewSerializer(serializers.Serializer):
    text = serializers.CharField(trim_whitespace=False)


class PasteApplySerializer(serializers.Serializer):
    quote = QuoteSerializer()
    text = serializers.CharField(trim_whitespace=False)
    sectionIndex = serializers.IntegerField(min_value=0, default=0)
    mode = serializers.ChoiceField(choices=PasteMode.choices, default=PasteMode.REPLACE)
