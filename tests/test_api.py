"""HTTP behaviour: authentication, role guards, error format and a few full flows."""

from datetime import date, timedelta
from decimal import Decimal

from erp.models.user import UserRole
from erp.services.leave_service import OVERLAP_MESSAGE
from tests.conftest import TEST_PASSWORD
from tests.helpers import auth_headers

API = "/api/v1"


class TestAuth:
    async def test_login_and_me(self, client, employee):
        user, emp = employee
        response = await client.post(f"{API}/auth/login", json={"email": user.email, "password": TEST_PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["expires_in"] > 0

        me = await client.get(
            f"{API}/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}
        )
        assert me.status_code == 200
        assert me.json()["email"] == user.email
        assert me.json()["employee_id"] == str(emp.id)

    async def test_wrong_password(self, client, employee):
        response = await client.post(
            f"{API}/auth/login", json={"email": employee[0].email, "password": "not-the-password"}
        )
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid email or password"}

    async def test_missing_token(self, client):
        response = await client.get(f"{API}/auth/me")
        assert response.status_code in (401, 403)

    async def test_garbage_token(self, client):
        response = await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    async def test_only_admin_creates_users(self, client, employee, admin):
        payload = {"email": "new.hire@example.com", "password": "Welcome@1", "full_name": "New Hire", "role": "HR"}

        denied = await client.post(f"{API}/auth/users", json=payload, headers=auth_headers(employee[0]))
        assert denied.status_code == 403
        assert "Insufficient role" in denied.json()["detail"]

        created = await client.post(f"{API}/auth/users", json=payload, headers=auth_headers(admin[0]))
        assert created.status_code == 201
        assert created.json()["role"] == "HR"


class TestGuards:
    async def test_employee_cannot_list_all_leave(self, client, employee):
        response = await client.get(f"{API}/hr/leave-requests", headers=auth_headers(employee[0]))
        assert response.status_code == 403

    async def test_hr_is_not_finance(self, client, hr, manager):
        assert (await client.get(f"{API}/finance/invoices", headers=auth_headers(hr[0]))).status_code == 403
        assert (await client.get(f"{API}/finance/invoices", headers=auth_headers(manager[0]))).status_code == 200

    async def test_admin_passes_every_guard(self, client, admin):
        for path in ("/hr/payrolls", "/hr/compliance-tracking", "/finance/bills", "/employees"):
            response = await client.get(f"{API}{path}", headers=auth_headers(admin[0]))
            assert response.status_code == 200, path

    async def test_employee_sees_only_own_record(self, client, employee, make_user):
        _, other = await make_user()
        headers = auth_headers(employee[0])

        own = await client.get(f"{API}/employees/{employee[1].id}", headers=headers)
        assert own.status_code == 200
        assert own.json()["employee_code"] == employee[1].employee_code

        response = await client.get(f"{API}/employees/{other.id}", headers=headers)
        assert response.status_code == 403
        assert response.json() == {"detail": "You can only view your own employee record"}

    async def test_not_found_format(self, client, manager, random_id):
        response = await client.get(f"{API}/hr/leave-requests/{random_id}", headers=auth_headers(manager[0]))
        assert response.status_code == 404
        assert response.json() == {"detail": "Leave request not found"}

    async def test_validation_error(self, client, employee):
        response = await client.post(
            f"{API}/hr/leave-requests",
            json={"leave_type": "VACATION", "start_date": "2025-03-10", "end_date": "2025-03-12"},
            headers=auth_headers(employee[0]),
        )
        assert response.status_code == 422


class TestLeaveFlow:
    async def test_apply_approve_and_overlap(self, client, employee, manager):
        emp_headers = auth_headers(employee[0])
        created = await client.post(
            f"{API}/hr/leave-requests",
            json={"leave_type": "ANNUAL", "start_date": "2025-03-10", "end_date": "2025-03-12"},
            headers=emp_headers,
        )
        assert created.status_code == 201
        leave = created.json()
        assert leave["total_days"] == 3
        assert leave["status"] == "PENDING"

        approved = await client.patch(
            f"{API}/hr/leave-requests/{leave['id']}/approve",
            json={"status": "APPROVED", "approver_comments": "Enjoy"},
            headers=auth_headers(manager[0]),
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "APPROVED"

        overlapping = await client.post(
            f"{API}/hr/leave-requests",
            json={"leave_type": "SICK", "start_date": "2025-03-11", "end_date": "2025-03-13"},
            headers=emp_headers,
        )
        assert overlapping.status_code == 400
        assert overlapping.json() == {"detail": OVERLAP_MESSAGE}

        mine = await client.get(f"{API}/hr/leave-requests/my-requests", headers=emp_headers)
        assert mine.json()["total"] == 1

        balance = await client.get(f"{API}/hr/leave-requests/balance/2025", headers=emp_headers)
        assert balance.json()["taken"] == 3

    async def test_employee_cannot_approve(self, client, employee):
        headers = auth_headers(employee[0])
        leave = (await client.post(
            f"{API}/hr/leave-requests",
            json={"leave_type": "PERSONAL", "start_date": "2025-04-01", "end_date": "2025-04-01"},
            headers=headers,
        )).json()
        response = await client.patch(
            f"{API}/hr/leave-requests/{leave['id']}/approve", json={"status": "APPROVED"}, headers=headers
        )
        assert response.status_code == 403


class TestPayrollApi:
    async def test_create_and_summary(self, client, manager, employee):
        headers = auth_headers(manager[0])
        payload = {
            "employee_id": str(employee[1].id),
            "pay_period": "2025-03",
            "basic_salary": "50000",
            "allowances": "5000",
            "tax_deduction": "2000",
            "provident_fund": "3000",
        }
        created = await client.post(f"{API}/hr/payrolls", json=payload, headers=headers)
        assert created.status_code == 201
        assert Decimal(created.json()["net_salary"]) == Decimal("50000")

        duplicate = await client.post(f"{API}/hr/payrolls", json=payload, headers=headers)
        assert duplicate.status_code == 400

        summary = await client.get(f"{API}/hr/payrolls/summary/2025-03", headers=headers)
        assert summary.status_code == 200
        assert Decimal(summary.json()["total_gross"]) == Decimal("55000")

        bad_period = await client.get(f"{API}/hr/payrolls/summary/2025-13", headers=headers)
        assert bad_period.status_code == 422

    async def test_employee_reads_own_payroll(self, client, manager, employee):
        await client.post(
            f"{API}/hr/payrolls",
            json={"employee_id": str(employee[1].id), "pay_period": "2025-02", "basic_salary": "30000"},
            headers=auth_headers(manager[0]),
        )
        response = await client.get(f"{API}/hr/payrolls/my-payroll", headers=auth_headers(employee[0]))
        assert response.status_code == 200
        assert [p["pay_period"] for p in response.json()] == ["2025-02"]


class TestFinanceApi:
    async def test_invoice_export_download(self, client, manager):
        headers = auth_headers(manager[0])
        invoice = await client.post(
            f"{API}/finance/invoices",
            json={
                "client_name": "Acme Traders",
                "place_of_supply": "Tamil Nadu",
                "due_date": (date.today() + timedelta(days=15)).isoformat(),
                "items": [{"description": "Consulting", "quantity": "10", "rate": "1500", "gst_rate": "18"}],
            },
            headers=headers,
        )
        assert invoice.status_code == 201
        body = invoice.json()
        assert Decimal(body["igst_amount"]) == Decimal("2700")
        assert Decimal(body["total_amount"]) == Decimal("17700")

        job = await client.post(
            f"{API}/finance/exports", json={"export_type": "INVOICES", "format": "CSV"}, headers=headers
        )
        assert job.status_code == 202
        assert job.json()["status"] == "COMPLETED"
        assert job.json()["is_downloadable"] is True

        download = await client.get(f"{API}/finance/exports/{job.json()['id']}/download", headers=headers)
        assert download.status_code == 200
        assert download.headers["content-type"].startswith("text/csv")
        assert "Acme Traders" in download.text

        deleted = await client.delete(f"{API}/finance/exports/{job.json()['id']}", headers=headers)
        assert deleted.status_code == 204

    async def test_gst_calculator_open_to_employees(self, client, employee):
        response = await client.post(
            f"{API}/finance/gst/calculate",
            json={"subtotal": "1000", "tax_rate": "18", "customer_state": "Karnataka"},
            headers=auth_headers(employee[0]),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["is_intra_state"] is True
        assert Decimal(body["gst"]["cgst"]) == Decimal("90")
        assert Decimal(body["grand_total"]) == Decimal("1180")

        unknown = await client.post(
            f"{API}/finance/gst/calculate",
            json={"subtotal": "1000", "customer_state": "Atlantis"},
            headers=auth_headers(employee[0]),
        )
        assert unknown.status_code == 400

    async def test_gstin_validation(self, client, employee):
        response = await client.post(
            f"{API}/finance/gst/validate-gstin", json={"gstin": "27AAPFU0939F1ZV"}, headers=auth_headers(employee[0])
        )
        assert response.json()["is_valid"] is True
        assert response.json()["state_name"] == "Maharashtra"

    async def test_invoice_duplicate_and_audit_trail(self, client, manager, random_id):
        headers = auth_headers(manager[0])
        created = await client.post(
            f"{API}/finance/invoices",
            json={
                "client_name": "Acme Traders",
                "place_of_supply": "Karnataka",
                "due_date": (date.today() + timedelta(days=15)).isoformat(),
                "items": [{"description": "Consulting", "quantity": "1", "rate": "1000", "gst_rate": "18"}],
            },
            headers=headers,
        )
        invoice_id = created.json()["id"]
        status_change = await client.patch(
            f"{API}/finance/invoices/{invoice_id}/status", json={"status": "PENDING"}, headers=headers
        )
        assert status_change.status_code == 200

        copy = await client.post(f"{API}/finance/invoices/{invoice_id}/duplicate", headers=headers)
        assert copy.status_code == 201
        assert copy.json()["status"] == "DRAFT"
        assert copy.json()["id"] != invoice_id

        trail = await client.get(f"{API}/finance/invoices/{invoice_id}/audit-trail", headers=headers)
        assert trail.status_code == 200
        assert trail.json()["total"] == 2
        assert {entry["operation"] for entry in trail.json()["data"]} == {"CREATE", "STATUS_CHANGE"}
        assert all(entry["performed_by"] == str(manager[0].id) for entry in trail.json()["data"])

        only_status = await client.get(
            f"{API}/finance/invoices/{invoice_id}/audit-trail",
            params={"operation": "STATUS_CHANGE"},
            headers=headers,
        )
        assert only_status.json()["data"][0]["new_values"] == {"status": "PENDING"}

        missing = await client.get(f"{API}/finance/invoices/{random_id}/audit-trail", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Invoice not found"

        bulk = await client.post(
            f"{API}/finance/invoices/bulk-delete",
            json={"invoice_ids": [copy.json()["id"], invoice_id]},
            headers=headers,
        )
        assert bulk.status_code == 200
        assert bulk.json()["success"] == 1
        assert bulk.json()["errors"][0]["reference"] == invoice_id

    async def test_gst_summary_report(self, client, manager, employee):
        start, end = (date.today() - timedelta(days=30)).isoformat(), date.today().isoformat()
        response = await client.get(
            f"{API}/finance/gst/reports/summary",
            params={"start_date": start, "end_date": end, "group_by": "month"},
            headers=auth_headers(manager[0]),
        )
        assert response.status_code == 200
        assert response.json()["invoice_count"] == 0
        assert Decimal(response.json()["net_liability"]) == 0

        bad_group = await client.get(
            f"{API}/finance/gst/reports/summary",
            params={"start_date": start, "end_date": end, "group_by": "year"},
            headers=auth_headers(manager[0]),
        )
        assert bad_group.status_code == 422

        forbidden = await client.get(
            f"{API}/finance/gst/reports/summary",
            params={"start_date": start, "end_date": end},
            headers=auth_headers(employee[0]),
        )
        assert forbidden.status_code == 403

        reconcile = await client.post(f"{API}/finance/gst/reconcile", json={}, headers=auth_headers(manager[0]))
        assert reconcile.status_code == 400
        assert reconcile.json()["detail"] == "Either invoice_ids or period is required"


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["checks"]["database"] == "connected"

    async def test_root(self, client):
        response = await client.get("/")
        assert response.json()["docs"] == "/docs"


async def test_employee_role_value_is_stored(employee):
    assert employee[0].role == UserRole.EMPLOYEE.value
