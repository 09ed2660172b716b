"""Request dependencies."""

from fastapi import Request

from blinks_relay.container import RelayContainer
from blinks_relay.services.payment_service import PaymentService


def get_container(request: Request) -> RelayContainer:
    return request.app.state.container


def get_payment_service(request: Request) -> PaymentService:
    return get_container(request).payment_service
