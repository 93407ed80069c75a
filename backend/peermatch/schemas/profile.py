from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from peermatch.models import Slot, Visibility
from peermatch.services.text_normalizer import MAX_TEXT_LENGTH


class CamelModel(BaseModel):
    """Snake-case fields, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ProfileUpdate(CamelModel):
    # Raw input may carry extra whitespace that normalization collapses
    who_you_are: Optional[str] = Field(default=None, max_length=MAX_TEXT_LENGTH * 4)
    who_you_are_looking_for: Optional[str] = Field(default=None, max_length=MAX_TEXT_LENGTH * 4)
    mentoring_subjects: Optional[str] = Field(default=None, max_length=MAX_TEXT_LENGTH * 4)
    professional_services: Optional[str] = Field(default=None, max_length=MAX_TEXT_LENGTH * 4)
    visibility: Optional[Visibility] = None

    def slot_edits(self) -> Dict[Slot, str]:
        """
        Slots present in the request body.

        An explicit null clears the slot just like an empty string; slots
        left out of the body are not touched.
        """
        provided = self.model_fields_set
        edits: Dict[Slot, str] = {}
        for slot in Slot:
            if slot.column_prefix in provided:
                edits[slot] = getattr(self, slot.column_prefix) or ""
        return edits


class StatusUpdate(CamelModel):
    is_online: Optional[bool] = None
    is_available_for_chat: Optional[bool] = None


class PublicProfile(CamelModel):
    user_id: str
    who_you_are: str = ""
    who_you_are_looking_for: str = ""
    mentoring_subjects: str = ""
    professional_services: str = ""
    is_online: bool = False
    last_seen: Optional[datetime] = None
    is_available_for_chat: bool = True
    visibility: Visibility = Visibility.PUBLIC


class ProfileEnvelope(CamelModel):
    profile: PublicProfile
    is_complete: bool


class ReprocessResponse(ProfileEnvelope):
    success: bool = True
    message: str = "Profile re-processed successfully"


class PresenceStatus(CamelModel):
    is_online: bool
    is_available_for_chat: bool
    last_seen: Optional[datetime] = None


class StatusResponse(CamelModel):
    success: bool = True
    status: PresenceStatus
