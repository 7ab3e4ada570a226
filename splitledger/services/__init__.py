"""
Services Package
================

Business logic layer for SplitLedger.

All ledger and authorization operations are handled here.
Routes should call these services, not manipulate models directly.
"""

from splitledger.services.exceptions import (
    LedgerError,
    ValidationError,
    StorageError,
    InvariantViolation
)

from splitledger.services.balance_service import (
    apply_expense,
    apply_settlement,
    reverse_expense,
    reverse_settlement,
    replace_expense_effect
)

from splitledger.services.debt_simplifier import simplify_debts, Transfer

from splitledger.services.ledger_queries import (
    get_simplified_debts,
    get_member_balance,
    get_group_balances
)

from splitledger.services.authorization_service import (
    can_record_transaction,
    can_delete_expense,
    can_delete_settlement,
    can_leave_group,
    can_transfer_admin,
    is_group_member,
    is_group_admin,
    require_authorization,
    AuthorizationError
)

from splitledger.services.membership_service import (
    create_group,
    add_member,
    leave_group,
    remove_member,
    transfer_admin,
    get_member_liabilities,
    MembershipError
)

from splitledger.services.expense_service import (
    create_expense,
    update_expense,
    delete_expense,
    list_group_expenses,
    ExpenseError
)

from splitledger.services.settlement_service import (
    create_settlement,
    delete_settlement,
    list_group_settlements,
    SettlementError
)
