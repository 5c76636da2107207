"""
Admin System Module

Administrative functionality for ULimo operators:

- Dashboard analytics (revenue, tickets sold, refunds, route fill rates,
  user growth and time-slot demand)
- User management and role assignment
- System settings (miles value, referral reward, registration bonus,
  hidden cities)

Every endpoint requires the admin role.
"""

from . import router, schemas, admin_service, analytics_service

__all__ = [
    "router",
    "schemas",
    "admin_service",
    "analytics_service"
]
