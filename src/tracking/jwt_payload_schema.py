from typing import TypedDict


class TrackingJWTPayload(TypedDict):
    """Claims carried by a tracking token on the wire"""

    sub: str  # User ID
    nwl: str  # Newsletter ID
    cls: list[str]  # Class IDs, sorted
    iat: int  # Issued-at timestamp
    exp: int  # Expiration timestamp
    jti: str  # Token ID, unique per issuance
