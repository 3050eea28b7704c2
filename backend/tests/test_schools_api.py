"""
School Directory Backend: API Endpoint Tests
=============================================

What:  Tests for the /api/schools routes and /health through the full app
       (middleware, exception handlers, serialization).
How:   httpx AsyncClient over ASGITransport; SchoolService runs on the
       in-memory database, uploads go to a temp directory and Gemini is a
       mock (see conftest.test_client).
"""

import os
from pathlib import Path

import pytest

from app.exceptions import LLMServiceError


async def create_school(client, data):
    response = await client.post("/api/schools/add", data=data)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def create_school_with_upload(client, data, image_bytes):
    del data["image"]
    response = await client.post(
        "/api/schools/add",
        data=data,
        files={"image": ("campus.jpg", image_bytes, "image/jpeg")},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateEndpoint:

    @pytest.mark.asyncio
    async def test_create_from_form(self, test_client, school_data):
        response = await test_client.post("/api/schools/add", data=school_data)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "School created successfully"
        assert body["data"]["id"] > 0
        assert body["data"]["email_id"] == "admin@oakhill.edu"
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_create_from_json(self, test_client, school_data):
        response = await test_client.post("/api/schools/add", json=school_data)
        assert response.status_code == 201
        assert response.json()["data"]["name"] == "Oak Hill Academy"

    @pytest.mark.asyncio
    async def test_create_with_uploaded_image(
        self, test_client, school_data, sample_image_bytes, temp_storage
    ):
        del school_data["image"]
        response = await test_client.post(
            "/api/schools/add",
            data=school_data,
            files={"image": ("campus.jpg", sample_image_bytes, "image/jpeg")},
        )

        assert response.status_code == 201
        image = response.json()["data"]["image"]
        assert image.startswith("schools/school-")
        assert image.endswith(".jpg")
        assert (Path(temp_storage) / image).read_bytes() == sample_image_bytes

        served = await test_client.get(f"/api/schools/uploads/{image}")
        assert served.status_code == 200
        assert served.content == sample_image_bytes

    @pytest.mark.asyncio
    async def test_rejected_upload_type(self, test_client, school_data):
        del school_data["image"]
        response = await test_client.post(
            "/api/schools/add",
            data=school_data,
            files={"image": ("brochure.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Only image files are allowed"

    @pytest.mark.asyncio
    async def test_failed_create_removes_uploaded_image(
        self, test_client, school_data, sample_image_bytes, temp_storage
    ):
        del school_data["image"]
        school_data["name"] = "A"
        response = await test_client.post(
            "/api/schools/add",
            data=school_data,
            files={"image": ("campus.jpg", sample_image_bytes, "image/jpeg")},
        )

        assert response.status_code == 400
        upload_dir = Path(temp_storage) / "schools"
        assert not upload_dir.exists() or os.listdir(upload_dir) == []

    @pytest.mark.asyncio
    async def test_validation_error_envelope(self, test_client, school_data):
        del school_data["name"]
        school_data["contact"] = "123"

        response = await test_client.post("/api/schools/add", data=school_data)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert body["details"] == [
            {"field": "name", "message": "School name is required"},
            {"field": "contact", "message": "Contact number must be exactly 10 digits"},
        ]

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, test_client):
        response = await test_client.post(
            "/api/schools/add",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_duplicate_email(self, test_client, school_data):
        await create_school(test_client, school_data)
        school_data["email_id"] = "ADMIN@oakhill.edu"

        response = await test_client.post("/api/schools/add", data=school_data)

        assert response.status_code == 409
        assert response.json()["message"] == "Email already exists"


class TestReadEndpoints:

    @pytest.mark.asyncio
    async def test_list_schools(self, test_client, school_data):
        await create_school(test_client, school_data)
        school_data["email_id"] = "office@pinecrest.edu"
        newest = await create_school(test_client, school_data)

        response = await test_client.get("/api/schools/getschools")

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data) == 2
        assert data[0]["id"] == newest["id"]

    @pytest.mark.asyncio
    async def test_get_school(self, test_client, school_data):
        created = await create_school(test_client, school_data)

        response = await test_client.get(f"/api/schools/get/{created['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Oak Hill Academy"

    @pytest.mark.asyncio
    async def test_get_unknown_school(self, test_client):
        response = await test_client.get("/api/schools/get/999")
        assert response.status_code == 404
        body = response.json()
        assert body["message"] == "School not found"
        assert body["error"] == "No school found with ID: 999"

    @pytest.mark.asyncio
    async def test_get_malformed_id(self, test_client):
        response = await test_client.get("/api/schools/get/abc")
        assert response.status_code == 400
        assert response.json()["error"] == "School ID must be a valid number"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("school_id", ["9999999999999999999999999", "2147483648", "²"])
    async def test_get_out_of_range_id(self, test_client, school_id):
        response = await test_client.get(f"/api/schools/get/{school_id}")
        assert response.status_code == 400
        assert response.json()["error"] == "School ID must be a valid number"

    @pytest.mark.asyncio
    async def test_by_city(self, test_client, school_data):
        await create_school(test_client, school_data)

        response = await test_client.get("/api/schools/city/Springfield")
        missing = await test_client.get("/api/schools/city/springfield")

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert missing.json()["count"] == 0

    @pytest.mark.asyncio
    async def test_by_state(self, test_client, school_data):
        await create_school(test_client, school_data)

        response = await test_client.get("/api/schools/state/Illinois")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Schools in Illinois retrieved successfully"
        assert body["count"] == 1

    @pytest.mark.asyncio
    async def test_short_city_argument(self, test_client):
        response = await test_client.get("/api/schools/city/X")
        assert response.status_code == 400
        assert response.json()["error"] == "City name must be at least 2 characters long"


class TestUpdateAndDeleteEndpoints:

    @pytest.mark.asyncio
    async def test_update(self, test_client, school_data):
        created = await create_school(test_client, school_data)
        school_data["name"] = "Oak Hill International"

        response = await test_client.put(f"/api/schools/{created['id']}", data=school_data)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Oak Hill International"
        assert data["image"] == school_data["image"]

    @pytest.mark.asyncio
    async def test_update_unknown(self, test_client, school_data):
        response = await test_client.put("/api/schools/404", data=school_data)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete(self, test_client, school_data):
        created = await create_school(test_client, school_data)

        response = await test_client.delete(f"/api/schools/{created['id']}")
        again = await test_client.delete(f"/api/schools/{created['id']}")

        assert response.status_code == 200
        assert response.json()["data"] == {"id": created["id"]}
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_update_with_new_upload_removes_old_file(
        self, test_client, school_data, sample_image_bytes, temp_storage
    ):
        created = await create_school_with_upload(test_client, school_data, sample_image_bytes)

        response = await test_client.put(
            f"/api/schools/{created['id']}",
            data=school_data,
            files={"image": ("new-campus.jpg", sample_image_bytes, "image/jpeg")},
        )

        assert response.status_code == 200
        new_image = response.json()["data"]["image"]
        assert new_image != created["image"]
        assert not (Path(temp_storage) / created["image"]).exists()
        assert (Path(temp_storage) / new_image).exists()

    @pytest.mark.asyncio
    async def test_update_keeping_image_keeps_file(
        self, test_client, school_data, sample_image_bytes, temp_storage
    ):
        created = await create_school_with_upload(test_client, school_data, sample_image_bytes)

        school_data["name"] = "Oak Hill International"
        response = await test_client.put(f"/api/schools/{created['id']}", data=school_data)

        assert response.status_code == 200
        assert response.json()["data"]["image"] == created["image"]
        assert (Path(temp_storage) / created["image"]).exists()

    @pytest.mark.asyncio
    async def test_delete_removes_uploaded_file(
        self, test_client, school_data, sample_image_bytes, temp_storage
    ):
        created = await create_school_with_upload(test_client, school_data, sample_image_bytes)

        response = await test_client.delete(f"/api/schools/{created['id']}")

        assert response.status_code == 200
        assert not (Path(temp_storage) / created["image"]).exists()


class TestDescriptionEndpoint:

    @pytest.mark.asyncio
    async def test_regenerate_description(self, test_client, school_data, describer):
        created = await create_school(test_client, school_data)

        response = await test_client.post(
            f"/api/schools/{created['id']}/regenerate-description"
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "description": "Oak Hill Academy is a leading institution in Springfield.",
        }
        school_arg = describer.generate_description.await_args.args[0]
        assert school_arg["name"] == "Oak Hill Academy"

    @pytest.mark.asyncio
    async def test_unknown_school(self, test_client, describer):
        response = await test_client.post("/api/schools/77/regenerate-description")
        assert response.status_code == 404
        describer.generate_description.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gemini_failure(self, test_client, school_data, describer):
        created = await create_school(test_client, school_data)
        describer.generate_description.side_effect = LLMServiceError(retry_after=60)

        response = await test_client.post(
            f"/api/schools/{created['id']}/regenerate-description"
        )

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "60"
        assert response.json()["message"] == "AI service unavailable"


class TestHealthEndpoint:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_degraded_without_gemini(self, test_client, describer):
        describer.health_check.return_value = False

        response = await test_client.get("/health")

        assert response.json()["status"] == "degraded"
        assert response.json()["gemini"] == "unavailable"

    @pytest.mark.asyncio
    async def test_api_prefixed_health(self, test_client):
        response = await test_client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"
