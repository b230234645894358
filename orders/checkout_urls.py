"""URL routes for checkout, payment return URLs and the payment webhook (v1)."""

from django.urls import path

from .views import (
    CheckoutFailureView,
    CheckoutPendingView,
    CheckoutSuccessView,
    CheckoutView,
    PaymentWebhookView,
)

app_name = "checkout"

urlpatterns = [
    path("", CheckoutView.as_view(), name="checkout"),
    path("success/", CheckoutSuccessView.as_view(), name="checkout-success"),
    path("pending/", CheckoutPendingView.as_view(), name="checkout-pending"),
    path("failure/", CheckoutFailureView.as_view(), name="checkout-failure"),
    path("webhooks/payment/", PaymentWebhookView.as_view(), name="checkout-webhook-payment"),
]
