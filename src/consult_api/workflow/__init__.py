"""
Consultation Workflow Module

State machine, persistence and controller for the consultation request lifecycle:
- Request creation with tier pricing snapshot
- Ranked advisor offers, accept/decline, explicit promotion and expiry
- Payment reservation, gateway confirmation, session and settlement
- Append-only transition log for every status change
"""
