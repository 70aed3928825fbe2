"""Steam Gamescope session installer (transactional, rollback-safe).

Core design goals:
- Every filesystem mutation is tracked and persisted while it happens
- Any hard failure or interrupt rolls the host back to its pre-install state
- One adapter per display manager (LightDM, SDDM, GDM) for autologin
- Uninstall is idempotent and safe on partially installed hosts
- Centralized logging
"""

__all__ = []
