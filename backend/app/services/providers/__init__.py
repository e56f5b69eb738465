"""Booking provider adapters — one per external flight-order API.

Modules:
    base        ProviderAdapter contract, shared HTTP client and error envelope parsing
    amadeus     OAuth2 client-credentials provider, order built from a flight-offer object
    duffel      Bearer-token provider, order built from an opaque offer id
    registry    Provider name → adapter lookup

Adding a provider means writing an adapter and registering it; the booking
engine never switches on provider names.
"""
