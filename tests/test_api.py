"""API route tests."""

import json

import pytest

from autoledger.core.exceptions import BadRequestError, ForbiddenError
from autoledger.core.security import Caller
from autoledger.services.rule_types import ALL_TENANTS
from tests.conftest import make_token

PREVIEW_URL = "/api/v1/classification/preview"
PROCESS_URL = "/api/v1/classification/process"

TRANSACTIONS = {
    "transactions": [
        {"transaction_date": "2024-03-15", "description": "스타벅스 강남점", "withdrawal_amount": "5500"},
        {"transaction_date": "2024-03-15", "description": "GS25 역삼점", "withdrawal_amount": "3000"},
        {"transaction_date": "2024-03-16", "description": "카카오택시", "withdrawal_amount": "12000"},
    ]
}


def rules_upload(document, filename="rules.json"):
    content = json.dumps(document, ensure_ascii=False).encode("utf-8")
    return {"file": (filename, content, "application/json")}


def company(company_id):
    return {
        "company_id": company_id,
        "company_name": f"회사 {company_id}",
        "categories": [{"category_id": f"{company_id}_FOOD", "category_name": "식비", "keywords": ["식당"]}],
    }


class TestClassification:
    @pytest.mark.asyncio
    async def test_preview_uses_own_company_rules(self, client, repository):
        response = await client.post(PREVIEW_URL, json=TRANSACTIONS)

        assert response.status_code == 200
        data = response.json()
        assert [r["category_id"] for r in data["results"]] == ["CAT_CAFE", None, None]
        assert data["results"][0]["matched_keywords"] == ["스타벅스"]
        assert data["results"][1]["reason"] == "No matching rules found"
        assert data["summary"]["classified"] == 1
        assert data["summary"]["category_counts"] == {"CAT_CAFE": 1}
        assert repository.stored == []

    @pytest.mark.asyncio
    async def test_process_saves_everything(self, client, repository):
        response = await client.post(PROCESS_URL, json=TRANSACTIONS)

        assert response.status_code == 200
        assert response.json() == {
            "total_processed": 3,
            "classified_count": 1,
            "unclassified_count": 2,
            "errors": [],
        }
        assert [t.tenant_id for t in repository.stored] == ["C001", None, None]

    @pytest.mark.asyncio
    async def test_process_reports_saved_count_on_failure(self, client, repository):
        repository.fail_on_save_all_call = 1
        response = await client.post(PROCESS_URL, json=TRANSACTIONS)

        assert response.status_code == 500
        assert response.json()["saved_count"] == 0

    @pytest.mark.asyncio
    async def test_rejects_two_sided_transaction(self, client):
        payload = {"transactions": [{
            "transaction_date": "2024-03-15",
            "description": "이체",
            "deposit_amount": "100",
            "withdrawal_amount": "100",
        }]}
        response = await client.post(PREVIEW_URL, json=payload)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_reclassify_other_company_forbidden(self, client):
        response = await client.post("/api/v1/classification/reclassify", params={"company_id": "C002"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_reclassify_limit_bounds(self, client):
        response = await client.post("/api/v1/classification/reclassify", params={"limit": 1001})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_reclassify_own_company(self, client, repository):
        await client.post(PROCESS_URL, json=TRANSACTIONS)
        response = await client.post("/api/v1/classification/reclassify", params={"limit": 10})

        assert response.status_code == 200
        assert response.json()["unclassified_count"] == 2

    @pytest.mark.asyncio
    async def test_stats(self, client):
        await client.post(PROCESS_URL, json=TRANSACTIONS)
        response = await client.get("/api/v1/classification/stats")

        assert response.status_code == 200
        assert response.json()["classification_rate"] == 100.0


class TestAdmin:
    @pytest.fixture
    def caller(self):
        return Caller(user_id="admin-1", user_type="ADMIN")

    @pytest.mark.asyncio
    async def test_preview_across_companies(self, client):
        response = await client.post(PREVIEW_URL, json=TRANSACTIONS)

        results = response.json()["results"]
        assert [r["tenant_id"] for r in results] == ["C001", None, "C002"]

    @pytest.mark.asyncio
    async def test_process_records_rule_owner(self, client, repository):
        await client.post(PROCESS_URL, json=TRANSACTIONS)
        assert [t.tenant_id for t in repository.stored] == ["C001", None, "C002"]

    @pytest.mark.asyncio
    async def test_global_stats(self, client):
        await client.post(PROCESS_URL, json=TRANSACTIONS)
        response = await client.get("/api/v1/classification/stats")

        assert response.json()["total_transactions"] == 3
        assert response.json()["unclassified_count"] == 1

    @pytest.mark.asyncio
    async def test_reclassify_requires_company(self, client):
        response = await client.post("/api/v1/classification/reclassify")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_clear_cache(self, client, rule_store):
        await client.post(PREVIEW_URL, json=TRANSACTIONS)
        response = await client.delete("/api/v1/rules/cache")
        await client.post(PREVIEW_URL, json=TRANSACTIONS)

        assert response.status_code == 204
        assert rule_store.all_calls == 2

    @pytest.mark.asyncio
    async def test_upload_for_any_company(self, client):
        response = await client.post(
            "/api/v1/rules/upload", files=rules_upload({"companies": [company("C001"), company("C002")]})
        )

        assert response.status_code == 200
        assert response.json() == {"rules_by_tenant": {"C001": 1, "C002": 1}}


class TestRulesUpload:
    @pytest.mark.asyncio
    async def test_upload_own_company(self, client, db_session):
        response = await client.post("/api/v1/rules/upload", files=rules_upload({"companies": [company("C001")]}))

        assert response.status_code == 200
        assert response.json()["rules_by_tenant"] == {"C001": 1}
        db_session.commit.assert_awaited()

    @pytest.mark.asyncio
    async def test_upload_for_other_company_forbidden(self, client, db_session):
        response = await client.post(
            "/api/v1/rules/upload", files=rules_upload({"companies": [company("C001"), company("C002")]})
        )

        assert response.status_code == 403
        db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_json(self, client):
        files = {"file": ("rules.json", b"{broken", "application/json")}
        response = await client.post("/api/v1/rules/upload", files=files)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid JSON format in rules file"

    @pytest.mark.asyncio
    async def test_schema_violation(self, client):
        response = await client.post("/api/v1/rules/upload", files=rules_upload({"companies": []}))

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Validation failed")

    @pytest.mark.asyncio
    async def test_requires_json_file(self, client):
        response = await client.post(
            "/api/v1/rules/upload", files=rules_upload({"companies": [company("C001")]}, filename="rules.csv")
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_clear_cache_forbidden(self, client):
        response = await client.delete("/api/v1/rules/cache")
        assert response.status_code == 403


class TestTransactions:
    @pytest.mark.asyncio
    async def test_list_classified_with_stats(self, client):
        await client.post(PROCESS_URL, json=TRANSACTIONS)
        response = await client.get("/api/v1/transactions", params={"company_id": "C001"})

        assert response.status_code == 200
        data = response.json()
        assert [t["description"] for t in data["transactions"]] == ["스타벅스 강남점"]
        assert data["pagination"] == {"total": 1, "page": 1, "limit": 50, "total_pages": 1}
        assert data["stats"]["classified_count"] == 1

    @pytest.mark.asyncio
    async def test_list_unclassified_second_page_has_no_stats(self, client):
        await client.post(PROCESS_URL, json=TRANSACTIONS)
        response = await client.get(
            "/api/v1/transactions",
            params={"company_id": "C001", "status": "unclassified", "page": 2, "limit": 1},
        )

        data = response.json()
        assert len(data["transactions"]) == 1
        assert data["pagination"]["total"] == 2
        assert data["stats"] is None

    @pytest.mark.asyncio
    async def test_other_company_forbidden(self, client):
        response = await client.get("/api/v1/transactions", params={"company_id": "C002"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_limit_above_100_rejected(self, client):
        response = await client.get("/api/v1/transactions", params={"company_id": "C001", "limit": 101})
        assert response.status_code == 422


class TestAuth:
    @pytest.mark.asyncio
    async def test_invalid_token(self, anon_client):
        response = await anon_client.post(
            PREVIEW_URL, json=TRANSACTIONS, headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_without_subject(self, anon_client):
        token = make_token(sub="")
        response = await anon_client.post(PREVIEW_URL, json=TRANSACTIONS, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_token(self, anon_client):
        token = make_token(company_id="C002")
        response = await anon_client.post(PREVIEW_URL, json=TRANSACTIONS, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert [r["category_id"] for r in response.json()["results"]] == [None, None, "CAT_TAXI"]

    @pytest.mark.asyncio
    async def test_user_without_company(self, anon_client):
        token = make_token(company_id=None)
        response = await anon_client.post(PREVIEW_URL, json=TRANSACTIONS, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 400


class TestCaller:
    def test_admin_processes_all_tenants(self):
        assert Caller("a", "ADMIN").processing_tenant() == ALL_TENANTS

    def test_business_processes_own_company(self):
        assert Caller("u", "BUSINESS", "C001").processing_tenant() == "C001"

    def test_business_without_company(self):
        with pytest.raises(BadRequestError):
            Caller("u", "BUSINESS").processing_tenant()

    def test_tenant_access(self):
        Caller("a", "ADMIN").check_tenant_access("C002")
        Caller("u", "BUSINESS", "C001").check_tenant_access("C001")
        with pytest.raises(ForbiddenError):
            Caller("u", "BUSINESS", "C001").check_tenant_access("C002")
