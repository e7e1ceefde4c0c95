"""
Real HTTP integration clients.

These clients communicate with the M-Pesa Daraja API over HTTPS.
They implement the same interface as the mock clients and return data shaped
according to src/integrations/contracts/*.

Switching:
The selection of mock vs real clients happens in src/api/main.py only.
"""
