"""
Payment Views (core.stripe_integration)
=======================================

REST endpoints for Stripe payments. All Stripe calls go through
``services``; every payment started here is mirrored as a pending
``PaymentLog`` row that the webhook reconciler later moves forward.

Endpoints
---------

1. GetStripeConfigView
   - URL: /api/payments/config/
   - Method: GET, Auth: None
   - Returns the publishable key of the active environment.

2. CreatePaymentIntentView
   - URL: /api/payments/intent/
   - Method: POST, Auth: Required
   - Body: {"amount": "150.00", "payment_type": "deposit", "project": 3}
   - Creates a PaymentIntent, logs a pending PaymentLog.

3. CreateCheckoutSessionView
   - URL: /api/payments/checkout-session/
   - Method: POST, Auth: Required
   - Same body plus optional success_url / cancel_url / customer_email.

4. PaymentLogViewSet
   - URL: /api/payments/, /api/payments/{id}/
   - Method: GET, Auth: Required
   - Own payments; filters project, status, payment_type, start_date, end_date.
   - /api/payments/all/ (admin): every payment plus statistics.

5. PaymentIntentStatusView / ConfirmPaymentIntentView
   - URL: /api/payments/intent/{id}/, /api/payments/intent/{id}/confirm/
   - Method: GET / POST, Auth: Required (owner or staff)
   - Live Stripe status; server-side confirmation.

6. ListPaymentMethodsView
   - URL: /api/payments/payment-methods/
   - Method: GET, Auth: Required
   - Saved cards of the user's Stripe customer.

7. Admin: CreateCustomerView (customers/), CustomerDetailView
   (customers/{id}/), CreateInvoiceView (invoices/), SubscriptionView
   (subscriptions/), SubscriptionDetailView (subscriptions/{id}/),
   RefundPaymentView (refund/)

8. StripeWebhookView
   - URL: /api/payments/webhook/
   - Method: POST, Auth: None (Stripe-Signature header)
   - Verifies the signature over the raw body and hands the event to
     ``webhooks.process_event``.

Security
--------
- Card data is handled exclusively by Stripe.
- The user id is always written into the metadata server-side.

Author: Agency Development Team
Version: 1.0.0
"""

import json
import logging

import stripe
from django.conf import settings
from django.db import transaction
from django.db.models import QuerySet
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.accounts.permissions import STAFF_ROLES, IsAdmin, has_role
from core.audit.services import log_activity
from . import services
from .models import PaymentLog
from .serializers import (
    CheckoutSessionRequestSerializer,
    ConfirmPaymentSerializer,
    CustomerCreateSerializer,
    CustomerUpdateSerializer,
    InvoiceCreateSerializer,
    PaymentLogSerializer,
    PaymentRequestSerializer,
    RefundSerializer,
    SubscriptionCreateSerializer,
)
from .webhooks import process_event

logger = logging.getLogger(__name__)


def _check_project_access(user, project) -> None:
    if project is None or has_role(user, *STAFF_ROLES):
        return
    if project.client_id != user.id:
        raise PermissionDenied("You cannot pay for this project.")


def _payment_metadata(request, data) -> dict:
    project = data.get("project")
    return {
        **data.get("metadata", {}),
        "user_id": request.user.id,
        "project_id": project.pk if project else None,
        "payment_type": data["payment_type"],
        "customer_email": request.user.email,
    }


class GetStripeConfigView(APIView):
    """
    endpoint so the frontend can initialize Stripe.js
    """

    permission_classes = [AllowAny]

    def get(self, request):
        publishable_key = (
            settings.STRIPE_LIVE_PUBLISHABLE_KEY
            if settings.STRIPE_LIVE_MODE
            else settings.STRIPE_TEST_PUBLISHABLE_KEY
        )
        return Response({"publishableKey": publishable_key, "currency": settings.DEFAULT_CURRENCY})


class CreatePaymentIntentView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = PaymentRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        project = data.get("project")
        _check_project_access(request.user, project)

        metadata = _payment_metadata(request, data)
        description = data.get("description") or (
            f"Paiement {data['payment_type']} - {project.title if project else 'Custom'}"
        )
        intent = services.create_payment_intent(
            amount=data["amount"],
            currency=data.get("currency"),
            customer_email=request.user.email,
            description=description,
            metadata=metadata,
        )

        PaymentLog.objects.create(
            user=request.user,
            project=project,
            payment_intent_id=intent.id,
            amount=intent.amount,
            currency=intent.currency,
            payment_type=data["payment_type"],
            description=description,
            metadata=metadata,
        )
        return Response(
            {
                "client_secret": intent.client_secret,
                "payment_intent_id": intent.id,
                "amount": services.from_minor_units(intent.amount),
                "currency": intent.currency,
            },
            status=status.HTTP_201_CREATED,
        )


class CreateCheckoutSessionView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CheckoutSessionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        project = data.get("project")
        _check_project_access(request.user, project)

        metadata = _payment_metadata(request, data)
        line_item = services.checkout_line_item(
            data["amount"],
            data["payment_type"],
            currency=data.get("currency"),
            project_label=f"Projet #{project.pk} - {project.title}" if project else "",
        )
        session = services.create_checkout_session(
            [line_item],
            customer_email=data.get("customer_email") or request.user.email,
            success_url=data.get("success_url", ""),
            cancel_url=data.get("cancel_url", ""),
            metadata=metadata,
        )

        PaymentLog.objects.create(
            user=request.user,
            project=project,
            checkout_session_id=session.id,
            amount=line_item["price_data"]["unit_amount"],
            currency=line_item["price_data"]["currency"],
            payment_type=data["payment_type"],
            description=line_item["price_data"]["product_data"]["name"],
            metadata=metadata,
        )
        return Response({"session_id": session.id, "url": session.url}, status=status.HTTP_201_CREATED)


def _own_payment_or_404(request, payment_intent_id: str) -> PaymentLog:
    rows = PaymentLog.objects.filter(payment_intent_id=payment_intent_id)
    if not has_role(request.user, *STAFF_ROLES):
        rows = rows.filter(user=request.user)
    return get_object_or_404(rows)


class PaymentIntentStatusView(APIView):
    """Live Stripe status of a payment intent next to the local mirror row."""

    permission_classes = [IsAuthenticated]

    def get(self, request, payment_intent_id):
        payment = _own_payment_or_404(request, payment_intent_id)
        remote = services.get_payment_status(payment_intent_id)
        return Response({**remote, "local_status": payment.status, "payment": payment.pk})


class ConfirmPaymentIntentView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, payment_intent_id):
        _own_payment_or_404(request, payment_intent_id)
        serializer = ConfirmPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        intent = services.confirm_payment_intent(
            payment_intent_id, serializer.validated_data.get("payment_method_id", "")
        )
        # the local row only moves on the matching webhook
        return Response({"payment_intent_id": intent.id, "status": intent.status})


class PaymentLogViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = PaymentLogSerializer
    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    def get_permissions(self):
        if self.action == "all":
            return [IsAdmin()]
        return super().get_permissions()

    def _filtered(self, queryset: QuerySet[PaymentLog]) -> QuerySet[PaymentLog]:
        params = self.request.query_params
        if params.get("project"):
            queryset = queryset.filter(project_id=params["project"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("payment_type"):
            queryset = queryset.filter(payment_type=params["payment_type"])
        if params.get("start_date"):
            queryset = queryset.filter(created_at__date__gte=params["start_date"])
        if params.get("end_date"):
            queryset = queryset.filter(created_at__date__lte=params["end_date"])
        return queryset

    def get_queryset(self) -> QuerySet[PaymentLog]:
        queryset = PaymentLog.objects.select_related("project", "user")
        if self.action != "all":
            queryset = queryset.filter(user=self.request.user)
        elif self.request.query_params.get("user"):
            queryset = queryset.filter(user_id=self.request.query_params["user"])
        return self._filtered(queryset).order_by("-created_at")

    @action(detail=False, methods=["get"])
    def all(self, request):
        """Every payment (filters as for the own list, plus ``user``) and statistics."""
        response = self.list(request)
        response.data["statistics"] = services.payment_statistics(PaymentLog.objects.all())
        return response


class ListPaymentMethodsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user
        customer = services.create_or_get_customer(
            user.email, name=user.get_full_name(), user_id=user.id
        )
        methods = services.list_payment_methods(customer.id)

        invoice_settings = customer.get("invoice_settings") or {}
        default_pm_id = invoice_settings.get("default_payment_method")
        for method in methods:
            method["is_default"] = method["id"] == default_pm_id

        resp = Response({"payment_methods": methods})
        resp["Cache-Control"] = "no-store"
        return resp


class CreateCustomerView(APIView):
    permission_classes = [IsAdmin]

    def post(self, request):
        serializer = CustomerCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if data["reuse_existing"]:
            customer = services.create_or_get_customer(data["email"], name=data.get("name", ""))
        else:
            customer = services.create_customer(
                data["email"],
                name=data.get("name", ""),
                phone=data.get("phone", ""),
                metadata=data.get("metadata"),
            )
        log_activity(request, "create_stripe_customer", entity_type="stripe_customer",
                     details={"customer_id": customer.id, "email": data["email"]})
        return Response(
            {"customer_id": customer.id, "email": customer.email, "name": customer.name},
            status=status.HTTP_201_CREATED,
        )


class CustomerDetailView(APIView):
    permission_classes = [IsAdmin]

    @staticmethod
    def _serialize(customer) -> dict:
        return {
            "customer_id": customer.id,
            "email": customer.email,
            "name": customer.name,
            "phone": customer.get("phone"),
            "metadata": dict(customer.get("metadata") or {}),
        }

    def get(self, request, customer_id):
        return Response(self._serialize(services.retrieve_customer(customer_id)))

    def patch(self, request, customer_id):
        serializer = CustomerUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        customer = services.update_customer(customer_id, **serializer.validated_data)
        log_activity(request, "update_stripe_customer", entity_type="stripe_customer",
                     details={"customer_id": customer_id, "fields": sorted(serializer.validated_data)})
        return Response(self._serialize(customer))


class CreateInvoiceView(APIView):
    permission_classes = [IsAdmin]

    def post(self, request):
        serializer = InvoiceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        project = data.get("project")
        metadata = {
            **data.get("metadata", {}),
            "project_id": project.pk if project else None,
            "user_id": project.client_id if project else None,
            "payment_type": PaymentLog.PaymentType.INVOICE,
            "created_by": request.user.email,
        }

        invoice = services.create_invoice(
            data["customer_id"],
            data["amount"],
            data["description"],
            currency=data.get("currency"),
            due_date=data.get("due_date"),
            metadata=metadata,
        )

        with transaction.atomic():
            payment = PaymentLog.objects.create(
                user=project.client if project else None,
                project=project,
                invoice_id=invoice.id,
                customer_id=data["customer_id"],
                amount=invoice.amount_due,
                currency=invoice.currency,
                payment_type=PaymentLog.PaymentType.INVOICE,
                description=data["description"],
                metadata=metadata,
            )
            log_activity(request, "create_invoice", payment, "payment",
                         details={"invoice_id": invoice.id})

        return Response(
            {
                "invoice_id": invoice.id,
                "invoice_url": invoice.hosted_invoice_url,
                "invoice_pdf": invoice.invoice_pdf,
                "status": invoice.status,
                "amount": services.from_minor_units(invoice.amount_due),
                "currency": invoice.currency,
            },
            status=status.HTTP_201_CREATED,
        )


class SubscriptionView(APIView):
    """Start a subscription for a customer and price."""

    permission_classes = [IsAdmin]

    def post(self, request):
        serializer = SubscriptionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        subscription = services.create_subscription(
            data["customer_id"],
            data["price_id"],
            trial_period_days=data["trial_period_days"],
            metadata={**data.get("metadata", {}), "created_by": request.user.email},
        )
        log_activity(request, "create_subscription", entity_type="stripe_subscription",
                     details={"subscription_id": subscription.id, "customer_id": data["customer_id"]})
        return Response(
            {"subscription_id": subscription.id, "status": subscription.status},
            status=status.HTTP_201_CREATED,
        )


class SubscriptionDetailView(APIView):
    """Cancel at period end, or right away with ``?immediately=true``."""

    permission_classes = [IsAdmin]

    def delete(self, request, subscription_id):
        immediately = request.query_params.get("immediately", "").lower() in ("1", "true", "yes")
        subscription = services.cancel_subscription(subscription_id, at_period_end=not immediately)
        log_activity(request, "cancel_subscription", entity_type="stripe_subscription",
                     details={"subscription_id": subscription_id, "immediately": immediately})
        return Response(
            {
                "subscription_id": subscription.id,
                "status": subscription.status,
                "cancel_at_period_end": subscription.get("cancel_at_period_end", False),
            }
        )


class RefundPaymentView(APIView):
    permission_classes = [IsAdmin]

    def post(self, request):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payment = get_object_or_404(PaymentLog, payment_intent_id=data["payment_intent_id"])
        if payment.status != PaymentLog.Status.SUCCEEDED:
            return Response(
                {"detail": f"Only succeeded payments can be refunded (status: {payment.status})."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        refund = services.refund_payment(
            payment.payment_intent_id, amount=data.get("amount"), reason=data.get("reason", "")
        )

        with transaction.atomic():
            payment.status = PaymentLog.Status.REFUNDED
            payment.refund_id = refund.id
            payment.refund_amount = refund.amount
            payment.refund_reason = data.get("reason", "")
            payment.refunded_at = timezone.now()
            payment.refunded_by = request.user
            payment.save()
            log_activity(request, "refund_payment", payment, "payment",
                         details={"refund_id": refund.id, "amount": refund.amount})

        return Response(
            {
                "refund_id": refund.id,
                "amount": services.from_minor_units(refund.amount),
                "status": refund.status,
            }
        )


class StripeWebhookView(APIView):
    """
    Stripe calls this endpoint; it carries no user session or token.

    Every rejection before ``process_event`` returns 400 without touching
    the database. A handler error returns 500 so Stripe retries.
    """

    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = []

    def post(self, request):
        payload = request.body
        sig_header = request.META.get("HTTP_STRIPE_SIGNATURE")
        if not sig_header:
            return Response({"detail": "Missing Stripe-Signature header."}, status=400)

        secret = settings.STRIPE_WEBHOOK_SECRET
        if not secret:
            logger.error("STRIPE_WEBHOOK_SECRET is not configured, webhook rejected")
            return Response({"detail": "Webhook secret not configured."}, status=400)

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), sig_header, secret, settings.STRIPE_WEBHOOK_TOLERANCE
            )
            event = json.loads(payload)
        except stripe.SignatureVerificationError:
            logger.warning("Stripe webhook with invalid signature rejected")
            return Response({"detail": "Invalid signature."}, status=400)
        except ValueError:
            logger.warning("Stripe webhook with unparsable payload rejected")
            return Response({"detail": "Invalid payload."}, status=400)

        if not isinstance(event, dict) or not event.get("id") or not event.get("type") or not isinstance(
            (event.get("data") or {}).get("object"), dict
        ):
            return Response({"detail": "Invalid event."}, status=400)

        try:
            result = process_event(event)
        except Exception:
            # already journaled and logged by process_event
            return Response({"detail": "Webhook handler failed."}, status=500)

        return Response({"received": True, "status": result})
