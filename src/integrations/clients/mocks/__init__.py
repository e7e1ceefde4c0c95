"""
Mock integration clients.

These clients return fake (but realistic) responses without calling any external API.
They are used when:
- Daraja credentials are not configured (INTEGRATIONS_MODE=mock, or no consumer key)
- We want to test the initiate -> callback flow end-to-end without external dependencies

Mock clients follow the SAME interface as real HTTP clients
(src/integrations/contracts/interfaces.PushPaymentProvider).
"""
