from decimal import Decimal

from rest_framework import serializers

from crm.models import ClientProject
from .models import PaymentLog
from .services import from_minor_units


class PaymentLogSerializer(serializers.ModelSerializer):
    amount_display = serializers.SerializerMethodField()
    project_title = serializers.CharField(source="project.title", read_only=True, default=None)
    user_email = serializers.CharField(source="user.email", read_only=True, default=None)

    class Meta:
        model = PaymentLog
        fields = [
            "id",
            "user",
            "user_email",
            "project",
            "project_title",
            "payment_intent_id",
            "checkout_session_id",
            "invoice_id",
            "charge_id",
            "amount",
            "amount_display",
            "currency",
            "status",
            "payment_type",
            "description",
            "error_message",
            "refund_id",
            "refund_amount",
            "refunded_at",
            "paid_at",
            "failed_at",
            "canceled_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_amount_display(self, obj) -> str:
        return str(from_minor_units(obj.amount))


class PaymentRequestSerializer(serializers.Serializer):
    """Common input of the intent and checkout-session endpoints (amounts in major units)."""

    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.50"))
    currency = serializers.CharField(required=False, max_length=3)
    payment_type = serializers.ChoiceField(
        choices=PaymentLog.PaymentType.choices, default=PaymentLog.PaymentType.OTHER
    )
    project = serializers.PrimaryKeyRelatedField(
        queryset=ClientProject.objects.all(), required=False, allow_null=True
    )
    description = serializers.CharField(required=False, allow_blank=True, max_length=500)
    metadata = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)

    def validate_currency(self, value: str) -> str:
        return value.lower()


class CheckoutSessionRequestSerializer(PaymentRequestSerializer):
    success_url = serializers.URLField(required=False)
    cancel_url = serializers.URLField(required=False)
    customer_email = serializers.EmailField(required=False)


class CustomerCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=50)
    metadata = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)
    reuse_existing = serializers.BooleanField(default=False)


class CustomerUpdateSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)
    name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=50)
    metadata = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Nothing to update.")
        return attrs


class ConfirmPaymentSerializer(serializers.Serializer):
    payment_method_id = serializers.CharField(required=False, allow_blank=True, max_length=255)


class SubscriptionCreateSerializer(serializers.Serializer):
    customer_id = serializers.CharField(max_length=255)
    price_id = serializers.CharField(max_length=255)
    trial_period_days = serializers.IntegerField(required=False, min_value=0, default=0)
    metadata = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)


class InvoiceCreateSerializer(serializers.Serializer):
    customer_id = serializers.CharField(max_length=255)
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.50"))
    description = serializers.CharField(max_length=500)
    currency = serializers.CharField(required=False, max_length=3)
    due_date = serializers.DateField(required=False)
    project = serializers.PrimaryKeyRelatedField(
        queryset=ClientProject.objects.all(), required=False, allow_null=True
    )
    metadata = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)


class RefundSerializer(serializers.Serializer):
    REASONS = ["duplicate", "fraudulent", "requested_by_customer"]

    payment_intent_id = serializers.CharField(max_length=255)
    amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0.01"), required=False
    )
    reason = serializers.ChoiceField(choices=REASONS, required=False)
