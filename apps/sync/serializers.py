from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal

from rest_framework import serializers

SYNC_SECTIONS = ("categories", "products", "transactions")

# Older clients send the snake_case spelling; the first non-empty one wins.
PAYMENT_METHOD_ALIASES = ("paymentMethod", "payment_method")


def resolve_payment_method(header: Mapping) -> str:
    for alias in PAYMENT_METHOD_ALIASES:
        value = header.get(alias)
        if value is not None and str(value).strip():
            return value
    return ""


class LenientDateTimeField(serializers.DateTimeField):
    """Datetime where any falsy value ("" / 0 / false) means "not set"."""

    def to_internal_value(self, value):
        if not value:
            return None
        return super().to_internal_value(value)


class MoneyField(serializers.DecimalField):
    """Two-place amount; float noise from JS clients (0.1 + 0.2) is rounded, not rejected."""

    def __init__(self, **kwargs):
        kwargs.setdefault("max_digits", 12)
        kwargs.setdefault("decimal_places", 2)
        super().__init__(**kwargs)

    def validate_precision(self, value):
        step = Decimal(1).scaleb(-self.decimal_places)
        return super().validate_precision(value.quantize(step, rounding=ROUND_HALF_UP))


class CategoryInputSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    deletedAt = LenientDateTimeField(source="deleted_at", required=False, allow_null=True)
    createdAt = serializers.DateTimeField(source="created_at", required=False)
    updatedAt = serializers.DateTimeField(source="updated_at", required=False)


class ProductInputSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=255)
    barcode = serializers.CharField(max_length=64, required=False, allow_null=True, allow_blank=True)
    price = MoneyField()
    stock = serializers.IntegerField(required=False)
    categoryId = serializers.CharField(
        source="category_id", max_length=64, required=False, allow_null=True, allow_blank=True
    )
    imagePath = serializers.CharField(
        source="image_path", max_length=500, required=False, allow_null=True, allow_blank=True
    )
    deletedAt = LenientDateTimeField(source="deleted_at", required=False, allow_null=True)
    createdAt = serializers.DateTimeField(source="created_at", required=False)
    updatedAt = serializers.DateTimeField(source="updated_at", required=False)

    def validate_categoryId(self, value):
        # An empty reference means "uncategorised", not a category with id "".
        return value or None


class TransactionHeaderSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    totalAmount = MoneyField(source="total_amount")
    paymentMethod = serializers.CharField(source="payment_method", max_length=32, required=False, allow_blank=True)
    createdAt = serializers.DateTimeField(source="created_at", required=False)

    def to_internal_value(self, data):
        if isinstance(data, Mapping):
            payment_method = resolve_payment_method(data)
            data = {key: value for key, value in data.items() if key not in PAYMENT_METHOD_ALIASES}
            data["paymentMethod"] = payment_method
        return super().to_internal_value(data)


class TransactionItemInputSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    productId = serializers.CharField(source="product_id", max_length=64)
    quantity = serializers.IntegerField()
    price = MoneyField()
    createdAt = serializers.DateTimeField(source="created_at", required=False)


class TransactionInputSerializer(serializers.Serializer):
    header = TransactionHeaderSerializer()
    items = TransactionItemInputSerializer(many=True, required=False)


class SyncPayloadSerializer(serializers.Serializer):
    """
    Batch pushed by an offline client.

    Every section is optional. A section that is missing, null or not a list
    is dropped before validation so the rest of the batch still applies.
    """

    categories = CategoryInputSerializer(many=True, required=False)
    products = ProductInputSerializer(many=True, required=False)
    transactions = TransactionInputSerializer(many=True, required=False)

    def to_internal_value(self, data):
        if isinstance(data, Mapping):
            data = {section: data[section] for section in SYNC_SECTIONS if isinstance(data.get(section), list)}
        return super().to_internal_value(data)
