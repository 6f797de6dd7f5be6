from .auth import capability_required, current_user, has_capability
