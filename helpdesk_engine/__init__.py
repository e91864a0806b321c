"""
Helpdesk Engine

Core ticket tracker with:
- Flat role model (employee / admin)
- Access policy gating every read and mutation
- Lifecycle engine with once-only resolved/closed stamping
- Collision-safe ticket numbering (TKT-0001)
- Fire-and-forget email notifications
"""

__version__ = "0.1.0"
