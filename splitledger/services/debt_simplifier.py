"""
DEBT SIMPLIFIER
===============

Turns a snapshot of balances into a short list of payments that settles
everyone. Greedy matching, not a minimum-transfer solver.

1. Round every balance to whole minor units
2. Creditors (owed money) sorted largest first, debtors (owe money) most
   negative first; ties broken by member id ascending
3. Repeatedly pay min(credit, |debt|) from the current debtor to the
   current creditor and move past whichever side hits zero

Example:
- A: +60, B: -30, C: -30
- B pays A 30, C pays A 30

The same snapshot always produces the same transfers in the same order,
and never more than (nonzero balances - 1) of them.
"""

from collections import namedtuple

from splitledger.services.exceptions import InvariantViolation
from splitledger.services.money import round_to_minor

Transfer = namedtuple('Transfer', ['from_user', 'to_user', 'amount'])


def simplify_debts(balances):
    """
    Args:
        balances: {member_id: balance} with positive = owed money. Values may
            be ints (minor units) or Decimals, which are rounded half up.

    Returns:
        list of Transfer(from_user=debtor, to_user=creditor, amount) in
        minor units.

    Raises:
        InvariantViolation: the balances do not sum to zero, including the
            case of a single unmatched nonzero balance.
    """
    rounded = {member_id: round_to_minor(value) for member_id, value in balances.items()}

    creditors = [[member_id, amount] for member_id, amount in rounded.items() if amount > 0]
    debtors = [[member_id, -amount] for member_id, amount in rounded.items() if amount < 0]

    if not creditors and not debtors:
        return []

    if len(creditors) + len(debtors) == 1:
        member_id = (creditors or debtors)[0][0]
        raise InvariantViolation(
            f"Cannot simplify a single unmatched balance (member {member_id})"
        )

    total = sum(rounded.values())
    if total != 0:
        raise InvariantViolation(f"Balances sum to {total}, expected 0")

    creditors.sort(key=lambda entry: (-entry[1], entry[0]))
    debtors.sort(key=lambda entry: (-entry[1], entry[0]))

    transfers = []
    debtor_idx = 0
    creditor_idx = 0

    while debtor_idx < len(debtors) and creditor_idx < len(creditors):
        debtor = debtors[debtor_idx]
        creditor = creditors[creditor_idx]

        amount = min(debtor[1], creditor[1])
        transfers.append(Transfer(from_user=debtor[0], to_user=creditor[0], amount=amount))

        debtor[1] -= amount
        creditor[1] -= amount

        if debtor[1] == 0:
            debtor_idx += 1
        if creditor[1] == 0:
            creditor_idx += 1

    return transfers
