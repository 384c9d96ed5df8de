from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import (
    ConfirmPaymentIntentView,
    CreateCheckoutSessionView,
    CreateCustomerView,
    CreateInvoiceView,
    CreatePaymentIntentView,
    CustomerDetailView,
    GetStripeConfigView,
    ListPaymentMethodsView,
    PaymentIntentStatusView,
    PaymentLogViewSet,
    RefundPaymentView,
    StripeWebhookView,
    SubscriptionDetailView,
    SubscriptionView,
)

app_name = "stripe_integration"

router = SimpleRouter()
router.register(r"", PaymentLogViewSet, basename="payment")

urlpatterns = [
    path("config/", GetStripeConfigView.as_view(), name="stripe-config"),
    path("intent/", CreatePaymentIntentView.as_view(), name="payment-intent"),
    path("intent/<str:payment_intent_id>/", PaymentIntentStatusView.as_view(), name="payment-intent-status"),
    path(
        "intent/<str:payment_intent_id>/confirm/",
        ConfirmPaymentIntentView.as_view(),
        name="payment-intent-confirm",
    ),
    path("checkout-session/", CreateCheckoutSessionView.as_view(), name="checkout-session"),
    path("payment-methods/", ListPaymentMethodsView.as_view(), name="payment-methods"),
    path("customers/", CreateCustomerView.as_view(), name="customers"),
    path("customers/<str:customer_id>/", CustomerDetailView.as_view(), name="customer-detail"),
    path("invoices/", CreateInvoiceView.as_view(), name="invoices"),
    path("subscriptions/", SubscriptionView.as_view(), name="subscriptions"),
    path("subscriptions/<str:subscription_id>/", SubscriptionDetailView.as_view(), name="subscription-detail"),
    path("refund/", RefundPaymentView.as_view(), name="refund"),
    path("webhook/", StripeWebhookView.as_view(), name="webhook"),
    path("", include(router.urls)),
]
