from otpgate.core.modules.user.models import User, UserRole, UserStatus
from otpgate.errors import AccessDeniedError, ValidationError


def ensure_not_terminated(user: User) -> None:
    """Reject accounts in a terminal status.

    Banned and deleted are set outside this service and have no recovery
    path through the OTP flow.

    Raises:
        AccessDeniedError: If the user is banned or deleted
    """
    if user.status == UserStatus.BANNED:
        raise AccessDeniedError("Your account has been banned, please contact support", reason="user_account_banned")

    if user.status == UserStatus.DELETED:
        raise AccessDeniedError("Your account has been deleted, please contact support", reason="user_account_deleted")


# Roles a caller may pick for themselves at signup
SELF_ASSIGNABLE_ROLES = frozenset({UserRole.USER, UserRole.PARENT, UserRole.STUDENT, UserRole.TEACHER})


def ensure_self_assignable_role(role: UserRole) -> None:
    """Reject privileged roles requested through public signup.

    Raises:
        ValidationError: If the role is not self-assignable
    """
    if role not in SELF_ASSIGNABLE_ROLES:
        raise ValidationError(f"Role '{role}' cannot be requested at signup", reason="role_not_allowed")
