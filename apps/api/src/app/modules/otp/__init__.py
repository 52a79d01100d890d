"""
OTP Module

One-time passcodes for email verification and password reset:
1. Issue a 6-digit code (10-minute expiry, overwrites any previous code)
2. Verify the code without consuming it (account becomes verified)
3. Reset the password, consuming the code

API Endpoints (mounted under /auth):
- POST /auth/send-otp
- POST /auth/verify-otp
- POST /auth/reset-password-after-otp

Background Jobs (via APScheduler):
- otp_purge_expired_challenges: Runs every 30 minutes
"""

from .jobs import register_otp_jobs

__all__ = ["register_otp_jobs"]
