import uuid

import httpx
import pytest_asyncio

from apps.question_bank.errors import NamespaceError, RecordStoreError


@pytest_asyncio.fixture
async def client(sync):
    from apps.main import app
    from apps.question_bank.dependencies import get_sync_service

    app.dependency_overrides[get_sync_service] = lambda: sync
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def test_health(client):
    res = await client.get("/")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}
    assert res.headers.get("x-request-id")


async def test_create_reembed_delete_scenario(client, question_payload):
    res = await client.post("/questions", json=question_payload)
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    data = body["data"]
    assert data["vector_dimensions"] == 1536
    assert uuid.UUID(data["vector_id"])

    res = await client.post("/update-embeddings/CSE-1115")
    assert res.status_code == 200
    report = res.json()
    assert report["summary"]["successful_upserts"] == 1
    assert report["summary"]["failed_upserts"] == 0
    assert report["updated"][0]["vectorId"] == data["vector_id"]

    res = await client.delete(f"/questions/{data['id']}")
    assert res.status_code == 200
    assert res.json() == {
        "message": "Question and its vector deleted successfully",
        "deletedId": data["id"],
        "vectorId": data["vector_id"],
        "transaction": "completed",
    }

    res = await client.get(f"/questions/{data['id']}")
    assert res.status_code == 404


async def test_create_missing_field_is_400(client, repo, index, question_payload):
    payload = dict(question_payload)
    del payload["course_code"]

    res = await client.post("/questions", json=payload)

    assert res.status_code == 400
    assert res.json()["success"] is False
    assert res.json()["missing_fields"] == ["course_code"]
    assert repo.rows == {}
    assert index.vectors == {}


async def test_create_rollback_is_500(client, repo, index, question_payload):
    repo.fail_on["insert"] = RecordStoreError("database connection lost")

    res = await client.post("/questions", json=question_payload)

    assert res.status_code == 500
    body = res.json()
    assert body["success"] is False
    assert body["transaction"] == "failed"
    assert body["vector_rolled_back"] is True
    assert "timestamp" in body
    assert index.vectors == {}


async def test_delete_not_found(client):
    res = await client.delete("/questions/12345")
    assert res.status_code == 404


async def test_delete_aborted(client, repo, resolver):
    row = repo.seed(vector_id="9c7d3b1a-1f2e-4d5c-8b6a-7e8f9a0b1c2d")
    resolver.fail = NamespaceError("vector index unreachable")

    res = await client.delete(f"/questions/{row['id']}")

    assert res.status_code == 500
    assert res.json()["transaction"] == "aborted"
    assert row["id"] in repo.rows


async def test_delete_critical(client, repo, question_payload):
    created = (await client.post("/questions", json=question_payload)).json()["data"]
    repo.fail_on["delete"] = RecordStoreError("database write timeout")

    res = await client.delete(f"/questions/{created['id']}")

    assert res.status_code == 500
    body = res.json()
    assert body["criticalError"] is True
    assert body["transaction"] == "failed"
    assert body["questionId"] == created["id"]
    assert body["vectorId"] == created["vector_id"]


async def test_reembed_blank_course_is_400(client):
    res = await client.post("/update-embeddings/%20")
    assert res.status_code == 400


async def test_reembed_failures_are_data_not_errors(client, repo, embedder):
    repo.seed(question="boom")
    embedder.fail_for.add("boom")

    res = await client.post("/update-embeddings/CSE-1115")

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["summary"]["failed_upserts"] == 1
    assert body["failed"][0]["error"]


async def test_reembed_fatal_listing_error_is_500(client, repo):
    repo.fail_on["list_by_course"] = RecordStoreError("database unavailable")

    res = await client.post("/update-embeddings/CSE-1115")

    assert res.status_code == 500
    assert res.json()["success"] is False
    assert res.json()["summary"]["total_processed"] == 0


async def test_update_embeddings_for_everything(client, repo):
    repo.seed(course_code="CSE-1115")
    repo.seed(course_code="CSE-2213", short="DM")

    res = await client.post("/update-embeddings")

    assert res.status_code == 200
    assert res.json()["summary"]["successful_upserts"] == 2


async def test_course_counts_endpoint(client, repo):
    repo.seed(exam_type="Mid")
    repo.seed(exam_type="Final")

    res = await client.get("/update-embeddings", params={"course_code": "CSE-1115"})
    assert res.status_code == 200
    assert res.json()["counts"] == {"total": 2, "mid": 1, "final": 1}

    res = await client.get("/update-embeddings")
    assert res.status_code == 400


async def test_list_and_count_questions(client, repo):
    repo.seed(exam_type="Mid", semester_term="Spring 2024")
    repo.seed(exam_type="Final", semester_term="Spring 2024")

    res = await client.get(
        "/questions",
        params={"course_code": "CSE-1115", "exam_type": "Mid", "semester_term": "Spring 2024"},
    )
    assert res.status_code == 200
    assert len(res.json()["data"]) == 1

    res = await client.get("/questions", params={"course_code": "CSE-1115"})
    assert res.status_code == 400

    res = await client.get("/questions/count")
    assert res.json() == {"count": 2}


async def test_update_question_endpoint(client, question_payload):
    created = (await client.post("/questions", json=question_payload)).json()["data"]

    res = await client.put(f"/questions/{created['id']}", json={"question_number": 2})

    assert res.status_code == 200
    body = res.json()
    assert body["data"]["question_number"] == "2"
    assert body["vector_sync"]["success"] is True

    res = await client.put("/questions/999", json={"marks": 1})
    assert res.status_code == 404


async def test_reconcile_endpoint(client, repo, index):
    repo.seed(vector_id=None)
    index.vectors[("course-dbms", "stray")] = {"values": [0.0] * 1536, "metadata": {}}

    res = await client.post("/reconcile", params={"course_code": "CSE-1115"})

    assert res.status_code == 200
    assert res.json()["success"] is True
    assert res.json()["orphaned_vectors_deleted"] == 1
    assert index.vectors == {}


async def test_delete_critical_on_driver_error_keeps_json_contract(client, repo, question_payload):
    created = (await client.post("/questions", json=question_payload)).json()["data"]
    repo.fail_on["delete"] = ConnectionRefusedError(111, "Connect call failed")

    res = await client.delete(f"/questions/{created['id']}")

    assert res.status_code == 500
    assert res.headers["content-type"].startswith("application/json")
    body = res.json()
    assert body["criticalError"] is True
    assert body["questionId"] == created["id"]
    assert body["vectorId"] == created["vector_id"]


async def test_create_driver_error_rolls_back(client, repo, index, question_payload):
    repo.fail_on["insert"] = ConnectionRefusedError(111, "Connect call failed")

    res = await client.post("/questions", json=question_payload)

    assert res.status_code == 500
    assert res.json()["vector_rolled_back"] is True
    assert index.vectors == {}
