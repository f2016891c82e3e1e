"""Upstream messaging API access and date-bounded retrieval."""

from .client import MessagingClient, RingCentralClient
from .fetcher import elapsed_days, fetch_messages, fetch_messages_smart, fetch_recent
from .models import FetchResult, Message, Page, Route, RouteVariant, TimeWindow
from .people import PersonDirectory
from .routes import EndpointResolver, RouteCache

__all__ = [
    "MessagingClient",
    "RingCentralClient",
    "fetch_messages",
    "fetch_messages_smart",
    "fetch_recent",
    "elapsed_days",
    "FetchResult",
    "Message",
    "Page",
    "Route",
    "RouteVariant",
    "TimeWindow",
    "PersonDirectory",
    "EndpointResolver",
    "RouteCache",
]
