"""Device token registration for push delivery."""

from .registry import DeviceRegistry, RegistrationResult, UnregistrationResult, mask_token

__all__ = [
    'DeviceRegistry',
    'RegistrationResult',
    'UnregistrationResult',
    'mask_token',
]
