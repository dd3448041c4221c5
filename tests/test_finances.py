from decimal import Decimal

import pytest

from studyspace.admin.settings_service import BusinessSettingsService
from studyspace.models import Transaction, AuditLog
from studyspace.finances.numbering import next_number
from studyspace.finances.settlement_service import SettlementService
from studyspace.finances.withdrawal_service import WithdrawalService

@pytest.fixture
def make_payment(db, student, merchant):
    def _make_payment(amount, transaction_type="booking", status="completed"):
        transaction = Transaction(
            transaction_number=next_number(db, Transaction, Transaction.transaction_number, "TXN"),
            user_id=student.id,
            merchant_id=merchant.id,
            transaction_type=transaction_type,
            amount=Decimal(amount),
            payment_method="online",
            status=status,
        )
        db.add(transaction)
        db.commit()
        db.refresh(transaction)
        return transaction

    return _make_payment

def test_eligible_transactions_exclude_other_payments(db, merchant, make_payment):
    paid = make_payment("1000")
    make_payment("400", status="refunded")
    make_payment("499", transaction_type="subscription")

    eligible = SettlementService(db).eligible_transactions(merchant.id)

    assert [t["id"] for t in eligible] == [paid.id]
    assert eligible[0]["transaction_number"] == "TXN000001"

def test_create_settlement(db, admin, merchant, make_payment):
    first = make_payment("1000")
    second = make_payment("500")
    service = SettlementService(db)

    settlement = service.create_settlement(admin, merchant.id, [first.id, second.id])

    assert settlement.settlement_number == "STL000001"
    assert settlement.total_amount == Decimal("1500.00")
    assert settlement.platform_fee_amount == Decimal("150.00")
    assert settlement.net_amount == Decimal("1350.00")
    assert settlement.transaction_count == 2
    assert settlement.status == "pending"
    assert service.unsettled_summary(merchant.id)["total_transactions"] == 0
    assert db.query(AuditLog).filter(AuditLog.action == "settlement_created").count() == 1

def test_transaction_is_settled_at_most_once(db, admin, merchant, make_payment):
    payment = make_payment("800")
    service = SettlementService(db)
    service.create_settlement(admin, merchant.id, [payment.id])

    with pytest.raises(ValueError, match="No valid transactions"):
        service.create_settlement(admin, merchant.id, [payment.id])

def test_settlement_custom_fee_and_minimum(db, admin, merchant, make_payment):
    payment = make_payment("300")
    service = SettlementService(db)

    BusinessSettingsService.update(db, {"minimum_settlement_amount": Decimal("500")})
    with pytest.raises(ValueError, match="at least"):
        service.create_settlement(admin, merchant.id, [payment.id])

    BusinessSettingsService.update(db, {"minimum_settlement_amount": Decimal("0")})
    settlement = service.create_settlement(admin, merchant.id, [payment.id], fee_percentage=Decimal("5"))
    assert settlement.platform_fee_amount == Decimal("15.00")
    assert settlement.net_amount == Decimal("285.00")

def test_settlement_status_flow(db, admin, merchant, make_payment):
    payment = make_payment("1000")
    service = SettlementService(db)
    settlement = service.create_settlement(admin, merchant.id, [payment.id])

    with pytest.raises(ValueError, match="Cannot change settlement from pending to paid"):
        service.update_status(admin, settlement.id, "paid", payment_reference="UTR1")

    service.update_status(admin, settlement.id, "processing")
    with pytest.raises(ValueError, match="Payment reference"):
        service.update_status(admin, settlement.id, "paid")

    paid = service.update_status(admin, settlement.id, "paid", payment_reference="UTR1")
    assert paid.status == "paid"
    assert paid.payment_method == "bank_transfer"
    assert paid.payment_date is not None

    with pytest.raises(ValueError):
        service.update_status(admin, settlement.id, "cancelled")

def test_cancelled_settlement_releases_transactions(db, admin, merchant, make_payment):
    payment = make_payment("1000")
    service = SettlementService(db)
    settlement = service.create_settlement(admin, merchant.id, [payment.id])

    service.update_status(admin, settlement.id, "cancelled")

    assert [t["id"] for t in service.eligible_transactions(merchant.id)] == [payment.id]

def test_merchant_balance(db, admin, merchant, make_payment):
    make_payment("2000")
    service = WithdrawalService(db)

    balance = service.merchant_balance(merchant.id)
    assert balance["total_earnings"] == Decimal("2000.00")
    assert balance["platform_fees"] == Decimal("200.00")
    assert balance["net_earnings"] == Decimal("1800.00")
    assert balance["available_balance"] == Decimal("1800.00")

    service.create_withdrawal(merchant.id, Decimal("600"))
    balance = service.merchant_balance(merchant.id)
    assert balance["pending_withdrawals"] == Decimal("600.00")
    assert balance["available_balance"] == Decimal("1200.00")

def test_withdrawal_validation(db, merchant, make_payment):
    make_payment("1000")
    service = WithdrawalService(db)

    assert service.validate_withdrawal(merchant.id, Decimal("0"))[0] is False
    is_valid, error, available = service.validate_withdrawal(merchant.id, Decimal("100"))
    assert not is_valid and "Minimum withdrawal" in error
    is_valid, error, available = service.validate_withdrawal(merchant.id, Decimal("950"))
    assert not is_valid and "Insufficient balance" in error
    assert available == Decimal("900.00")

    with pytest.raises(ValueError):
        service.create_withdrawal(merchant.id, Decimal("950"))

def test_withdrawal_status_flow(db, admin, merchant, make_payment):
    make_payment("2000")
    service = WithdrawalService(db)
    withdrawal = service.create_withdrawal(merchant.id, Decimal("1000"))

    with pytest.raises(ValueError, match="Cannot change withdrawal from pending to completed"):
        service.update_status(admin, withdrawal.id, "completed")

    service.update_status(admin, withdrawal.id, "approved")
    completed = service.update_status(admin, withdrawal.id, "completed", payment_reference="UTR9")
    assert completed.processed_by == admin.id
    assert completed.payment_method == "bank_transfer"

    balance = service.merchant_balance(merchant.id)
    assert balance["withdrawn_amount"] == Decimal("1000.00")
    assert balance["available_balance"] == Decimal("800.00")

def test_rejected_withdrawal_returns_to_balance(db, admin, merchant, make_payment):
    make_payment("2000")
    service = WithdrawalService(db)
    withdrawal = service.create_withdrawal(merchant.id, Decimal("1000"))

    service.update_status(admin, withdrawal.id, "rejected", admin_notes="Bank details mismatch")

    assert service.merchant_balance(merchant.id)["available_balance"] == Decimal("1800.00")

# API
def test_settlement_endpoints(client, auth_headers, admin, merchant, student, make_payment):
    payment = make_payment("2000")
    body = {"merchant_id": merchant.id, "transaction_ids": [payment.id]}

    assert client.post("/api/v1/settlements", json=body, headers=auth_headers(merchant)).status_code == 403

    eligible = client.get(f"/api/v1/settlements/eligible/{merchant.id}", headers=auth_headers(admin))
    assert [t["id"] for t in eligible.json()] == [payment.id]

    created = client.post("/api/v1/settlements", json=body, headers=auth_headers(admin))
    assert created.status_code == 201
    assert Decimal(created.json()["net_amount"]) == Decimal("1800")
    assert client.post("/api/v1/settlements", json=body, headers=auth_headers(admin)).status_code == 400

    settlement_id = created.json()["id"]
    response = client.patch(f"/api/v1/settlements/{settlement_id}/status", json={"status": "processing"},
                            headers=auth_headers(admin))
    assert response.json()["status"] == "processing"
    assert client.patch("/api/v1/settlements/9999/status", json={"status": "processing"},
                        headers=auth_headers(admin)).status_code == 404

def test_withdrawal_endpoints(client, auth_headers, admin, merchant, make_payment):
    make_payment("2000")
    headers = auth_headers(merchant)

    balance = client.get("/api/v1/withdrawals/balance", headers=headers).json()
    assert Decimal(balance["available_balance"]) == Decimal("1800")

    check = client.get("/api/v1/withdrawals/validate", params={"amount": "5000"}, headers=headers).json()
    assert check["is_valid"] is False
    assert "Insufficient balance" in check["error_message"]

    created = client.post("/api/v1/withdrawals", json={"amount": "1000"}, headers=headers)
    assert created.status_code == 201
    assert client.post("/api/v1/withdrawals", json={"amount": "1000", "withdrawal_method": "cash"},
                       headers=headers).status_code == 422

    withdrawal_id = created.json()["id"]
    assert client.patch(f"/api/v1/withdrawals/{withdrawal_id}/status", json={"status": "approved"},
                        headers=headers).status_code == 403
    response = client.patch(f"/api/v1/withdrawals/{withdrawal_id}/status", json={"status": "approved"},
                            headers=auth_headers(admin))
    assert response.json()["status"] == "approved"

    listed = client.get("/api/v1/withdrawals", headers=headers).json()
    assert [w["id"] for w in listed] == [withdrawal_id]
