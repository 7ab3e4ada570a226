from datetime import datetime
from enum import Enum

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from splitledger.extensions import db


# ============================================================
# ENUMS
# ============================================================
class MemberRole(Enum):
    ADMIN = 'admin'
    MEMBER = 'member'


class TransactionType(Enum):
    EXPENSE = 'expense'
    SETTLEMENT = 'settlement'


# ============================================================
# USER MODEL
# ============================================================
class User(UserMixin, db.Model):
    """
    Represents a registered user in the system.
    Users create groups, join groups, record expenses and settle up.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    groups_created = db.relationship('Group', backref='creator', lazy='dynamic')
    memberships = db.relationship('GroupMember', backref='user', lazy='dynamic',
                                  foreign_keys='GroupMember.user_id')

    def set_password(self, password):
        """Hash and set the user's password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against stored hash."""
        return check_password_hash(self.password_hash, password)

    def get_active_memberships(self):
        return self.memberships.filter_by(is_active=True)

    def __repr__(self):
        return f'<User {self.name}>'


# ============================================================
# GROUP MODEL
# ============================================================
class Group(db.Model):
    """
    Represents an expense sharing group.
    Each group has members and one ledger (a MemberBalance row per member).
    The creator is the group owner.
    """
    __tablename__ = 'groups'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500))
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    members = db.relationship('GroupMember', backref='group', lazy='dynamic',
                              cascade='all, delete-orphan')
    balances = db.relationship('MemberBalance', backref='group', lazy='dynamic',
                               cascade='all, delete-orphan')
    expenses = db.relationship('Expense', backref='group', lazy='dynamic',
                               cascade='all, delete-orphan')
    settlements = db.relationship('Settlement', backref='group', lazy='dynamic',
                                  cascade='all, delete-orphan')

    def get_member_count(self):
        """Return number of active members in the group."""
        return self.members.filter_by(is_active=True).count()

    def touch(self):
        """Record activity: expenses and settlements do not change the group row."""
        self.updated_at = datetime.utcnow()

    def __repr__(self):
        return f'<Group {self.name}>'


# ============================================================
# GROUP MEMBER MODEL
# ============================================================
class GroupMember(db.Model):
    """
    Represents membership of a user in a group.
    Tracks role (admin/member) and join date. Leaving is a soft delete.
    """
    __tablename__ = 'group_members'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    role = db.Column(db.String(20), default=MemberRole.MEMBER.value)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    left_at = db.Column(db.DateTime, nullable=True)
    left_reason = db.Column(db.String(255), nullable=True)

    # Prevent duplicate memberships
    __table_args__ = (
        db.UniqueConstraint('group_id', 'user_id', name='unique_group_member'),
    )

    def soft_delete(self, reason=None):
        self.is_active = False
        self.left_at = datetime.utcnow()
        self.left_reason = reason

    def reactivate(self, role=MemberRole.MEMBER.value):
        self.is_active = True
        self.role = role
        self.left_at = None
        self.left_reason = None
        self.joined_at = datetime.utcnow()

    def __repr__(self):
        return f'<GroupMember user={self.user_id} group={self.group_id}>'


# ============================================================
# MEMBER BALANCE MODEL (LEDGER ENTRY)
# ============================================================
class MemberBalance(db.Model):
    """
    Running net balance of one member inside one group.

    CRITICAL: 'balance' is ONLY changed by the ledger store through
    SQL-side increments. Positive = owed money, negative = owes money.
    Stored in minor units (e.g. paise / cents).
    """
    __tablename__ = 'member_balances'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    balance = db.Column(db.BigInteger, default=0, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    member = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('group_id', 'user_id', name='unique_member_balance'),
    )

    def __repr__(self):
        return f'<MemberBalance user={self.user_id} group={self.group_id} balance={self.balance}>'


# ============================================================
# EXPENSE MODEL
# ============================================================
class Expense(db.Model):
    """
    An expense paid by one member and shared by one or more members.
    Sum of shares must equal the amount (validated before saving).
    """
    __tablename__ = 'expenses'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    paid_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.BigInteger, nullable=False)  # minor units, > 0
    paid_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    payer = db.relationship('User', foreign_keys=[paid_by])
    shares = db.relationship('ExpenseShare', backref='expense', lazy='select',
                             cascade='all, delete-orphan', order_by='ExpenseShare.user_id')

    def share_for(self, user_id):
        for share in self.shares:
            if share.user_id == user_id:
                return share.amount
        return 0

    def __repr__(self):
        return f'<Expense {self.description} amount={self.amount}>'


class ExpenseShare(db.Model):
    """How much of an expense one member owes."""
    __tablename__ = 'expense_shares'

    id = db.Column(db.Integer, primary_key=True)
    expense_id = db.Column(db.Integer, db.ForeignKey('expenses.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    amount = db.Column(db.BigInteger, nullable=False)

    member = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('expense_id', 'user_id', name='unique_expense_share'),
    )

    def __repr__(self):
        return f'<ExpenseShare user={self.user_id} amount={self.amount}>'


# ============================================================
# SETTLEMENT MODEL
# ============================================================
class Settlement(db.Model):
    """A direct payment from one member to another."""
    __tablename__ = 'settlements'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    from_user = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    to_user = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    amount = db.Column(db.BigInteger, nullable=False)  # minor units, > 0
    note = db.Column(db.String(255), nullable=True)
    settled_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    payer = db.relationship('User', foreign_keys=[from_user])
    payee = db.relationship('User', foreign_keys=[to_user])

    def __repr__(self):
        return f'<Settlement {self.from_user}->{self.to_user} amount={self.amount}>'


# ============================================================
# LEDGER EFFECT ENTRY MODEL
# ============================================================
class LedgerEffectEntry(db.Model):
    """
    One signed delta applied to a member's balance by a transaction.

    CRITICAL: Written once when the transaction is applied and read back
    verbatim to reverse it. Never recomputed from the transaction's
    current field values.
    """
    __tablename__ = 'ledger_effect_entries'

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)

    # 'expense' or 'settlement' + id of that record
    reference_type = db.Column(db.String(20), nullable=False)
    reference_id = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    delta = db.Column(db.BigInteger, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_effect_reference', 'reference_type', 'reference_id'),
    )

    def __repr__(self):
        return f'<LedgerEffectEntry {self.reference_type}:{self.reference_id} user={self.user_id} delta={self.delta}>'
