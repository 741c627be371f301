from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class AuthSession:
    """
    Who is logged in on this client. Created by AnchorClient.login_family() /
    login_caregiver() and dropped by logout(); components get it through the
    client they are handed, never from global state.
    """
    token: str
    role: str  # family_admin | caregiver
    user: Optional[Dict[str, Any]] = None
    caregiver: Optional[Dict[str, Any]] = None
    care_recipient: Optional[Dict[str, Any]] = None

    @property
    def is_caregiver(self) -> bool:
        return self.role == "caregiver"

    @property
    def care_recipient_id(self) -> Optional[int]:
        if self.care_recipient:
            return self.care_recipient.get("id")
        if self.caregiver:
            return self.caregiver.get("careRecipientId")
        return None

    @property
    def actor_id(self) -> Optional[int]:
        profile = self.caregiver if self.is_caregiver else self.user
        return profile.get("id") if profile else None

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}
