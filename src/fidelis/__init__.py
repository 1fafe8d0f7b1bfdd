from .app import LoyaltyApp
from .errors import FidelisError, InvalidFormatError, NotFoundError, SyncFailureError
from .ledger import points_for
from .models import Card, CardType, Customer, Dataset, NewCustomer, Phone, Transaction
from .settings import FidelisSettings, load_settings

__all__ = [
    # app
    "LoyaltyApp",
    # models
    "Card",
    "CardType",
    "Customer",
    "Dataset",
    "NewCustomer",
    "Phone",
    "Transaction",
    # ledger
    "points_for",
    # errors
    "FidelisError",
    "InvalidFormatError",
    "NotFoundError",
    "SyncFailureError",
    # settings
    "FidelisSettings",
    "load_settings",
]
