# Import all models so metadata.create_all and migrations can detect them
from app.models.user import User
from app.models.directory import Employee, Establishment, EstablishmentOwner, CurrentEmployment
from app.models.vip import VIPSubscription, VIPPaymentTransaction

__all__ = [
    "User",
    "Employee",
    "Establishment",
    "EstablishmentOwner",
    "CurrentEmployment",
    "VIPSubscription",
    "VIPPaymentTransaction",
]
