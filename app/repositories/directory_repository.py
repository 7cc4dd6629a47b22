from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.models.directory import CurrentEmployment, Employee, EstablishmentOwner
from app.models.user import User


class DirectoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_linked_employee(self, employee_id: str, user_id: str) -> Optional[Employee]:
        return (
            self.db.query(Employee)
            .filter(Employee.id == employee_id, Employee.user_id == user_id)
            .first()
        )

    def list_employer_ownerships(self, user_id: str, employee_id: str) -> List[EstablishmentOwner]:
        """Ownerships the user holds over establishments currently employing the profile."""
        return (
            self.db.query(EstablishmentOwner)
            .join(
                CurrentEmployment,
                CurrentEmployment.establishment_id == EstablishmentOwner.establishment_id,
            )
            .filter(
                EstablishmentOwner.user_id == user_id,
                CurrentEmployment.employee_id == employee_id,
                CurrentEmployment.is_current.is_(True),
            )
            .all()
        )

    def get_establishment_ownership(self, user_id: str, establishment_id: str) -> Optional[EstablishmentOwner]:
        return (
            self.db.query(EstablishmentOwner)
            .filter(
                EstablishmentOwner.user_id == user_id,
                EstablishmentOwner.establishment_id == establishment_id,
            )
            .first()
        )

    def list_linked_employee_ids(self, user_id: str) -> List[str]:
        rows = self.db.query(Employee.id).filter(Employee.user_id == user_id).all()
        return [row.id for row in rows]

    def list_owned_establishment_ids(self, user_id: str) -> List[str]:
        rows = (
            self.db.query(EstablishmentOwner.establishment_id)
            .filter(EstablishmentOwner.user_id == user_id)
            .all()
        )
        return [row.establishment_id for row in rows]

    def list_current_staff(self, user_id: str) -> List[Tuple[str, Optional[dict]]]:
        """(employee_id, owner permissions) for profiles employed by establishments the user owns."""
        rows = (
            self.db.query(CurrentEmployment.employee_id, EstablishmentOwner.permissions)
            .join(
                EstablishmentOwner,
                EstablishmentOwner.establishment_id == CurrentEmployment.establishment_id,
            )
            .filter(
                EstablishmentOwner.user_id == user_id,
                CurrentEmployment.is_current.is_(True),
            )
            .all()
        )
        return [(row.employee_id, row.permissions) for row in rows]
