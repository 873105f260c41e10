"""
Use Cases Package.

Each use case is a self-contained package following the layered
architecture defined in core/:
- domain/: Pure business logic (policies, services)
- repository.py: Data access over a DocumentStore
- session.py: Use-case-specific session context

Available use cases:
- hospital: Appointment booking, lab tests, administration
"""
