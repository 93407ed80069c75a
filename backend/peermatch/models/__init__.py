from peermatch.models.user import User
from peermatch.models.profile import Profile, Slot, Visibility

__all__ = ["User", "Profile", "Slot", "Visibility"]
