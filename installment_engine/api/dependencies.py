"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from installment_engine.infrastructure.clients.payment_gateway import PaymentGatewayClient
from installment_engine.infrastructure.clients.notifications import ReminderDispatcher
from installment_engine.utils.clock import Clock, SystemClock


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_clock() -> Clock:
    """Provide the time source; tests override with a FixedClock"""
    return SystemClock()


def get_payment_gateway() -> PaymentGatewayClient:
    """Provide payment gateway client instance"""
    return PaymentGatewayClient()


def get_reminder_dispatcher() -> ReminderDispatcher:
    """Provide reminder webhook client instance"""
    return ReminderDispatcher()
