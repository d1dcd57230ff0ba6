"""Outbound delivery of completed analyses."""

from .webhook import DeliveryResult, NotificationReport, WebhookNotifier, build_payload

__all__ = ["DeliveryResult", "NotificationReport", "WebhookNotifier", "build_payload"]
