from django.urls import path

from . import api, webhooks

urlpatterns = [
    path("cart", api.CartView.as_view(), name="cart"),
    path("cart/add", api.AddToCartView.as_view(), name="cart-add"),
    path("cart/update", api.UpdateCartView.as_view(), name="cart-update"),
    path("cart/remove/<int:item_id>", api.RemoveFromCartView.as_view(), name="cart-remove"),
    path("cart/clear", api.ClearCartView.as_view(), name="cart-clear"),
    path("orders", api.CreateOrderView.as_view(), name="orders-create"),
    path("orders/mine", api.MyOrdersView.as_view(), name="orders-mine"),
    path("orders/sales", api.SalesView.as_view(), name="orders-sales"),
    path("orders/all", api.AllOrdersView.as_view(), name="orders-all"),
    path("orders/<int:order_id>", api.OrderDetailView.as_view(), name="orders-detail"),
    path("orders/<int:order_id>/status", api.OrderStatusView.as_view(), name="orders-status"),
    path("payments/create-intent", api.CreatePaymentIntentView.as_view(), name="payments-create-intent"),
    path("payments/webhook", webhooks.stripe_webhook, name="payments-webhook"),
    path("payments/<int:order_id>", api.PaymentStatusView.as_view(), name="payments-status"),
]
