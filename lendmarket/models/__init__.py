from lendmarket.models.loan import Loan
from lendmarket.models.loan_application import LoanApplication
from lendmarket.models.user import User

__all__ = [
    "Loan",
    "LoanApplication",
    "User",
]
