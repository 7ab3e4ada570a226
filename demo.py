# save as: demo.py
# Walks through a small trip: three friends, one dinner, one settle-up.
# Uses an in-memory database, nothing is written to disk.

from config import TestConfig
from splitledger import create_app
from splitledger.extensions import db
from splitledger.models import User
from splitledger.services import (
    create_expense, create_group, create_settlement, delete_expense,
    get_group_balances
)
from splitledger.services.money import to_minor_units


def run_demo():
    app = create_app(TestConfig)

    with app.app_context():
        users = {}
        for name in ('Asha', 'Bala', 'Chitra'):
            user = User(name=name, email=f'{name.lower()}@example.com')
            user.set_password('secret123')
            db.session.add(user)
            users[name] = user
        db.session.commit()

        a, b, c = (users[n].id for n in ('Asha', 'Bala', 'Chitra'))
        group = create_group('Goa trip', owner_id=a, member_ids=[b, c])

        steps = []

        dinner = create_expense(
            group.id, created_by=a, description='Dinner',
            amount=to_minor_units('90'), paid_by=a, split_between=[a, b, c]
        )
        steps.append(('Asha paid 90 for dinner, split 3 ways', get_group_balances(group.id)))

        create_settlement(group.id, created_by=b, from_user_id=b, to_user_id=a,
                          amount=to_minor_units('30'), note='UPI')
        steps.append(('Bala paid Asha 30', get_group_balances(group.id)))

        delete_expense(dinner.id, a)
        steps.append(('Dinner deleted', get_group_balances(group.id)))

        return steps


if __name__ == '__main__':
    for title, summary in run_demo():
        print(f"\n{'=' * 50}\n{title}\n{'=' * 50}")
        for member in summary['member_balances']:
            print(f"  {member['name']:<8} {member['balance']:>10}")
        for debt in summary['simplified_debts']:
            print(f"  {debt['from_name']} -> {debt['to_name']}: {debt['amount']}")
