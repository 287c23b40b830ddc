"""
Use Cases

Organized into domain folders:
- auth/: Signup, login, token refresh, logout
- sessions/: Session listing, status and remote logout
"""
