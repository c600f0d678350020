"""Bridge ingress: routes network events to portals."""

from tgportal.gateway.service import BridgeEventGateway

__all__ = ["BridgeEventGateway"]
