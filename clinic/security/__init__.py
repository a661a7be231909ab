# Security module
from clinic.security.auth import (
    get_password_hash, verify_password, create_access_token,
    get_current_user, get_current_verified_user
)

__all__ = [
    'get_password_hash', 'verify_password', 'create_access_token',
    'get_current_user', 'get_current_verified_user'
]
