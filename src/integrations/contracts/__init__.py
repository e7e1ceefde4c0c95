"""
Contracts (data models).

This folder defines the request/response shapes for the payment provider:
- STK push request/response
- the asynchronous callback body Daraja posts back

Both the mock and the real HTTP client use these contracts, so routes and
services rely on stable models rather than on ad-hoc dicts.
"""
