"""
Bookings app.

This app owns the booking side of the escrow lifecycle:
- Service: Offerings a provider lists in the catalog
- Booking: A customer's request for a service, driven by a state machine
- BookingService: Actor-checked transitions that move the booking and its
  escrow payment together

Related apps:
    - payments: EscrowPayment custody record and settlement
    - authentication: VerificationGate consulted when a booking is requested
    - notifications: Counter-party notifications for every transition
"""
