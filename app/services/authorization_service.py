import logging
from typing import Dict, Set

from app.models.user import User
from app.models.vip import TIER_EMPLOYEE, TIER_ESTABLISHMENT, VIPSubscription
from app.repositories.directory_repository import DirectoryRepository

logger = logging.getLogger(__name__)


def _can_edit_employees(permissions) -> bool:
    return (permissions or {}).get("can_edit_employees") is True


class AuthorizationGuard:
    """
    Decides whether a caller may act on a VIP entity.

    Every check fails closed: a lookup error counts as "no relationship".
    """

    def __init__(self, directory_repo: DirectoryRepository):
        self.directory_repo = directory_repo

    def can_purchase(self, user: User, tier: str, entity_id: str) -> bool:
        try:
            if tier == TIER_EMPLOYEE:
                return self._can_manage_employee(user.id, entity_id)
            if tier == TIER_ESTABLISHMENT:
                return self.directory_repo.get_establishment_ownership(user.id, entity_id) is not None
        except Exception as e:
            logger.warning(f"Ownership lookup failed for user {user.id} on {tier} {entity_id}: {e}")
        return False

    def can_cancel(self, user: User, subscription: VIPSubscription) -> bool:
        if self.is_platform_admin(user):
            return True
        return self.can_purchase(user, subscription.tier, subscription.entity_id)

    def can_verify(self, user: User) -> bool:
        return self.is_platform_admin(user)

    def can_reject(self, user: User) -> bool:
        return self.is_platform_admin(user)

    def is_platform_admin(self, user: User) -> bool:
        return bool(user is not None and user.is_active and user.is_admin)

    def manageable_entities(self, user: User) -> Dict[str, Set[str]]:
        """Entity ids per tier for which can_purchase holds."""
        entities: Dict[str, Set[str]] = {TIER_EMPLOYEE: set(), TIER_ESTABLISHMENT: set()}
        try:
            entities[TIER_EMPLOYEE].update(self.directory_repo.list_linked_employee_ids(user.id))
            entities[TIER_EMPLOYEE].update(
                employee_id
                for employee_id, permissions in self.directory_repo.list_current_staff(user.id)
                if _can_edit_employees(permissions)
            )
            entities[TIER_ESTABLISHMENT].update(self.directory_repo.list_owned_establishment_ids(user.id))
        except Exception as e:
            logger.warning(f"Entity lookup failed for user {user.id}: {e}")
            return {TIER_EMPLOYEE: set(), TIER_ESTABLISHMENT: set()}
        return entities

    def _can_manage_employee(self, user_id: str, employee_id: str) -> bool:
        # The profile's own linked account
        if self.directory_repo.get_linked_employee(employee_id, user_id) is not None:
            logger.debug(f"VIP access: user {user_id} owns employee profile {employee_id}")
            return True

        # An owner/manager of the current employer, allowed to edit employees
        for ownership in self.directory_repo.list_employer_ownerships(user_id, employee_id):
            if _can_edit_employees(ownership.permissions):
                logger.debug(
                    f"VIP access: user {user_id} manages employee {employee_id} "
                    f"via establishment {ownership.establishment_id}"
                )
                return True
        return False
