# patra/core/role_guard.py

from patra.core.letter import Letter
from patra.core.lifecycle import LetterAction
from patra.errors import PermissionDenied
from patra.security.roles import ALL_ROLES, HEAD


# ==================================================
# ACTION → ROLES ALLOWED TO PERFORM IT
# ==================================================
ACTION_ROLE_AUTHORITY = {
    LetterAction.FORWARD: set(ALL_ROLES),
    LetterAction.SEND_TO_HEAD: set(ALL_ROLES - {HEAD}),

    # Head-signing authority
    LetterAction.SIGN: {HEAD},

    LetterAction.UPLOAD_REPORT: set(ALL_ROLES),
    LetterAction.CLOSE_CASE: set(ALL_ROLES),
    LetterAction.APPROVE: set(ALL_ROLES),
    LetterAction.REJECT: set(ALL_ROLES),
}

# Actions only the current holder of the letter may perform
OWNER_ONLY_ACTIONS = {
    LetterAction.SEND_TO_HEAD,
    LetterAction.SIGN,
    LetterAction.CLOSE_CASE,
    LetterAction.APPROVE,
    LetterAction.REJECT,
}


def validate_role_authority(role: str, letter: Letter, action: LetterAction) -> None:
    """
    Validate whether a role may perform an action on a letter.
    """

    # --------------------------------------------------
    # 1. Action-level authority
    # --------------------------------------------------
    allowed_roles = ACTION_ROLE_AUTHORITY.get(action, set())

    if role not in allowed_roles:
        raise PermissionDenied(
            f"Role '{role}' is not allowed to {action.value}"
        )

    # --------------------------------------------------
    # 2. Ownership
    # --------------------------------------------------
    if action in OWNER_ONLY_ACTIONS and letter.owner != role:
        raise PermissionDenied(
            f"Role '{role}' does not hold letter {letter.reference_number} "
            f"(held by '{letter.owner}')"
        )


def can_perform(role: str, letter: Letter, action: LetterAction) -> bool:
    try:
        validate_role_authority(role, letter, action)
    except PermissionDenied:
        return False
    return True
