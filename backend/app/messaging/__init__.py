"""Outbound messaging gateway."""

from .gateway import CloudApiGateway, GatewayError, get_gateway

__all__ = ["CloudApiGateway", "GatewayError", "get_gateway"]
