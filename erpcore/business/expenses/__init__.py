from erpcore.business.expenses.models import Expense
from erpcore.business.expenses.schemas import ExpenseCreate, ExpenseRead
from erpcore.business.expenses.service import ExpenseService, expense_service

__all__ = ["Expense", "ExpenseCreate", "ExpenseRead", "ExpenseService", "expense_service"]
