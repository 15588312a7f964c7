# casri/core/constants.py

import enum


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"
    USER = "USER"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    ZAAD = "ZAAD"
    EDAHAB = "EDAHAB"
    CREDIT = "CREDIT"

    @classmethod
    def _missing_(cls, value):
        # The dashboard sends lowercase methods ("cash", "zaad", ...)
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper())
        return None


class StatsPeriod(str, enum.Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class ExpenseType(str, enum.Enum):
    RENT = "RENT"
    ELECTRICITY = "ELECTRICITY"
    SALARIES_AND_WAGES = "SALARIES_AND_WAGES"
    SECURITY = "SECURITY"
    REPAIRS_AND_MAINTENANCE = "REPAIRS_AND_MAINTENANCE"
    MOBILE_MONEY = "MOBILE_MONEY"
    BANK_CHARGE_FEES = "BANK_CHARGE_FEES"
    MARKETING_AND_BRANDING = "MARKETING_AND_BRANDING"
    TAXES = "TAXES"
    INTERNET = "INTERNET"
    WATER = "WATER"
    OTHERS = "OTHERS"


STAFF_ROLES = frozenset({UserRole.ADMIN.value, UserRole.EMPLOYEE.value})


def sql_in(values) -> str:
    """Render enum values for a CheckConstraint ``IN (...)`` clause."""
    return ", ".join(f"'{item.value}'" for item in values)
