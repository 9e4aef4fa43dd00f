from api.features.accounts.entities.user_profile import UserProfile

__all__ = ["UserProfile"]
