"""Opportunity scanning."""

from .opportunity_scanner import OpportunityScanner, COMPLEXITY_PENALTY, encode_quotes, decode_quotes
from .triangular import RouteQuote, candidate_routes, best_leg, compose_route

__all__ = [
    "OpportunityScanner",
    "COMPLEXITY_PENALTY",
    "encode_quotes",
    "decode_quotes",
    "RouteQuote",
    "candidate_routes",
    "best_leg",
    "compose_route",
]
