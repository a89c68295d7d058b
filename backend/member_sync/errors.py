"""
Member Sync - Exceptions
"""

from typing import List, Optional


class MemberSyncError(Exception):
    """Base exception for member sync operations"""
    pass


class ValidationError(MemberSyncError):
    """Inbound member event is missing required data"""
    pass


class MissingEmailError(ValidationError):
    """No email could be resolved from the member event"""

    def __init__(self, available_fields: Optional[List[str]] = None):
        self.available_fields = available_fields or []
        super().__init__("Email is required")


class MalformedInput(MemberSyncError):
    """Request body could not be parsed into a member event"""
    pass


class UpstreamFailure(MemberSyncError):
    """A profile or identity store call failed"""
    pass
