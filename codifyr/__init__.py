"""
Codifyr — Identity & Progression Core for a Verified-Coder Community
======================================================================
Registers and authenticates members, tracks their identity-verification
proof, and turns an accumulated XP score into a level and badge tier.
Presentation lives elsewhere; it calls into this package through auth
actions and reads derived state from the session machine.

Package layout::

    codifyr/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Routes, badge table, XP-per-level
    ├── client.py          # In-process wiring (provider + machine + actions)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # profiles, verification_uploads
    ├── identity/
    │   ├── provider.py    # Identity provider contract + result types
    │   └── gotrue.py      # Supabase GoTrue REST implementation (httpx)
    ├── engine/
    │   ├── events.py      # Notice, Severity, AuthErrorKind
    │   ├── validation.py  # Credential / profile input validation
    │   └── progression.py # Level progress + badge tiers
    ├── services/
    │   ├── session_machine.py      # Session state machine
    │   ├── auth_service.py         # Sign-up / sign-in / reset / resend
    │   ├── profile_service.py      # Profile reads + XP awards
    │   ├── verification_service.py # Proof-of-identity submissions
    │   └── upload_service.py       # Proof file type gating
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT + engine dependencies
        └── routes/        # Profile + verification endpoints
"""

__version__ = "0.1.0"
