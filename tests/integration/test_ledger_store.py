import pytest

from splitledger.extensions import db
from splitledger.models import MemberBalance
from splitledger.services import ledger_store
from splitledger.services.exceptions import InvariantViolation
from splitledger.services.ledger_effect import LedgerEffect


def _tamper(group_id, user_id, value):
    MemberBalance.query.filter_by(group_id=group_id, user_id=user_id).update(
        {MemberBalance.balance: value}, synchronize_session=False
    )
    db.session.commit()


def test_new_members_start_at_zero(group_id, trio, balances):
    assert balances() == {trio["A"]: 0, trio["B"]: 0, trio["C"]: 0}
    assert ledger_store.get_balance(group_id, trio["B"]) == 0


def test_missing_entry_reads_as_zero(group_id):
    assert ledger_store.get_balance(group_id, 9999) == 0


def test_ensure_entry_is_idempotent(group_id, trio):
    assert ledger_store.ensure_entry(group_id, trio["A"]) is False
    assert MemberBalance.query.filter_by(group_id=group_id).count() == 3


def test_apply_delta_increments_in_place(group_id, trio):
    ledger_store.apply_delta(group_id, trio["A"], 500)
    ledger_store.apply_delta(group_id, trio["A"], -200)
    db.session.commit()

    assert ledger_store.get_balance(group_id, trio["A"]) == 300


def test_apply_delta_creates_missing_entry(group_id, make_user):
    outsider = make_user("D")
    ledger_store.apply_delta(group_id, outsider, -75)

    assert ledger_store.get_balance(group_id, outsider) == -75


def test_apply_effect_and_group_total(group_id, trio, balances):
    effect = LedgerEffect.from_mapping(group_id, {trio["A"]: 600, trio["B"]: -600})
    ledger_store.apply_effect(effect)

    assert balances() == {trio["A"]: 600, trio["B"]: -600, trio["C"]: 0}
    assert ledger_store.get_group_total(group_id) == 0
    ledger_store.assert_balanced(group_id)


def test_assert_balanced_raises_on_nonzero_sum(group_id, trio):
    ledger_store.apply_delta(group_id, trio["A"], 1)

    with pytest.raises(InvariantViolation):
        ledger_store.assert_balanced(group_id)


def test_record_load_delete_effect(group_id, trio):
    effect = LedgerEffect.from_mapping(
        group_id, {trio["A"]: 900, trio["B"]: -450, trio["C"]: -450}, "expense", 7
    )
    ledger_store.record_effect(effect)

    loaded = ledger_store.load_effect("expense", 7)
    assert loaded == effect
    assert loaded.reference_id == 7

    ledger_store.delete_effect("expense", 7)
    assert ledger_store.load_effect("expense", 7) is None


def test_record_effect_needs_reference(group_id, trio):
    effect = LedgerEffect.from_mapping(group_id, {trio["A"]: 1, trio["B"]: -1})
    with pytest.raises(ValueError):
        ledger_store.record_effect(effect)


class TestRecompute:
    def _seed(self, group_id, trio):
        effect = LedgerEffect.from_mapping(
            group_id, {trio["A"]: 6000, trio["B"]: -3000, trio["C"]: -3000}, "expense", 1
        )
        ledger_store.apply_effect(effect)
        ledger_store.record_effect(effect)
        db.session.commit()

    def test_no_drift(self, group_id, trio):
        self._seed(group_id, trio)

        report = ledger_store.recompute_group_balances(group_id)

        assert report["drift"] == {}
        assert report["was_corrected"] is False
        assert report["expected_total"] == 0

    def test_reports_drift_without_touching_balances(self, group_id, trio, balances):
        self._seed(group_id, trio)
        _tamper(group_id, trio["B"], -2500)
        _tamper(group_id, trio["C"], -3500)

        report = ledger_store.recompute_group_balances(group_id)

        assert report["drift"] == {trio["B"]: -500, trio["C"]: 500}
        assert report["was_corrected"] is False
        assert balances()[trio["B"]] == -2500

    def test_repair_restores_expected_balances(self, group_id, trio, balances):
        self._seed(group_id, trio)
        _tamper(group_id, trio["A"], 0)
        _tamper(group_id, trio["B"], 0)

        report = ledger_store.recompute_group_balances(group_id, repair=True)

        assert report["was_corrected"] is True
        assert report["previous_balances"][trio["A"]] == 0
        assert balances() == {trio["A"]: 6000, trio["B"]: -3000, trio["C"]: -3000}

    def test_unknown_group(self, app):
        with pytest.raises(ValueError):
            ledger_store.recompute_group_balances(12345)
