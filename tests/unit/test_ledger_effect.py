import pytest

from splitledger.services.exceptions import InvariantViolation, ValidationError
from splitledger.services.ledger_effect import (
    LedgerEffect, build_expense_effect, build_settlement_effect
)


class TestExpenseEffect:
    def test_equal_split_with_payer_in_shares(self):
        effect = build_expense_effect(1, payer_id=10, amount=9000,
                                      shares=[(10, 3000), (11, 3000), (12, 3000)])
        assert effect.as_dict() == {10: 6000, 11: -3000, 12: -3000}
        assert effect.reference_type == "expense"

    def test_payer_not_in_shares(self):
        effect = build_expense_effect(1, payer_id=10, amount=500, shares={11: 200, 12: 300})
        assert effect.as_dict() == {10: 500, 11: -200, 12: -300}

    def test_payer_paying_only_for_self_moves_nothing(self):
        effect = build_expense_effect(1, payer_id=10, amount=500, shares={10: 500})
        # The payer is still recorded so the expense can be reversed
        assert effect.as_dict() == {10: 0}
        assert not effect

    def test_deltas_sorted_by_member(self):
        effect = build_expense_effect(1, payer_id=30, amount=300, shares={20: 100, 10: 200})
        assert effect.member_ids == [10, 20, 30]

    def test_share_mismatch_rejected(self):
        with pytest.raises(ValidationError, match="does not match"):
            build_expense_effect(1, payer_id=10, amount=1000, shares={10: 500, 11: 499})

    @pytest.mark.parametrize("amount", [0, -100, 10.5, "100", None, True])
    def test_bad_amount_rejected(self, amount):
        with pytest.raises(ValidationError):
            build_expense_effect(1, payer_id=10, amount=amount, shares={10: 100})

    def test_non_positive_share_rejected(self):
        with pytest.raises(ValidationError):
            build_expense_effect(1, payer_id=10, amount=100, shares=[(10, 150), (11, -50)])

    def test_duplicate_share_member_rejected(self):
        with pytest.raises(ValidationError, match="more than once"):
            build_expense_effect(1, payer_id=10, amount=100, shares=[(11, 50), (11, 50)])

    def test_empty_shares_rejected(self):
        with pytest.raises(ValidationError):
            build_expense_effect(1, payer_id=10, amount=100, shares=[])


class TestSettlementEffect:
    def test_payer_credited_payee_debited(self):
        effect = build_settlement_effect(1, from_user_id=11, to_user_id=10, amount=3000)
        assert effect.as_dict() == {10: -3000, 11: 3000}
        assert effect.reference_type == "settlement"

    def test_self_settlement_rejected(self):
        with pytest.raises(ValidationError):
            build_settlement_effect(1, from_user_id=10, to_user_id=10, amount=100)

    def test_non_positive_amount_rejected(self):
        with pytest.raises(ValidationError):
            build_settlement_effect(1, from_user_id=10, to_user_id=11, amount=0)

    def test_amount_beyond_bigint_rejected(self):
        with pytest.raises(ValidationError, match="too large"):
            build_settlement_effect(1, from_user_id=10, to_user_id=11, amount=2 ** 63)


class TestLedgerEffect:
    def test_unbalanced_effect_cannot_exist(self):
        with pytest.raises(InvariantViolation):
            LedgerEffect(group_id=1, deltas=((10, 100), (11, -99)))

    def test_negated_reverses_every_delta(self):
        effect = LedgerEffect.from_mapping(1, {10: 600, 11: -300, 12: -300}, "expense", 5)
        reverse = effect.negated()
        assert reverse.as_dict() == {10: -600, 11: 300, 12: 300}
        assert reverse.reference_id == 5

    def test_with_reference_keeps_deltas(self):
        effect = build_settlement_effect(1, 11, 10, 100).with_reference("settlement", 42)
        assert effect.reference_id == 42
        assert effect.as_dict() == {10: -100, 11: 100}
