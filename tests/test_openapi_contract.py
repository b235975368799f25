from stockbook.main import app

EXPECTED_PATHS = [
    "/",
    "/health",
    "/products",
    "/products/low-stock",
    "/products/{product_id}",
    "/products/{product_id}/add-stock",
    "/products/{product_id}/adjust-stock",
    "/products/{product_id}/deactivate",
    "/products/{product_id}/reorder",
    "/products/{product_id}/reorder-status",
    "/products/{product_id}/stock",
    "/ready",
]


def test_openapi_paths_snapshot():
    actual_paths = sorted(app.openapi()["paths"].keys())
    assert actual_paths == EXPECTED_PATHS


def test_stock_mutations_document_error_envelope():
    paths = app.openapi()["paths"]
    responses = paths["/products/{product_id}/add-stock"]["post"]["responses"]
    assert "201" in responses
    for status_code in ("400", "403", "404"):
        assert status_code in responses
        schema_ref = responses[status_code]["content"]["application/json"]["schema"]["$ref"]
        assert schema_ref.endswith("/ErrorOut")


def test_bearer_scheme_points_at_external_issuer():
    schema = app.openapi()
    schemes = schema["components"]["securitySchemes"]
    assert list(schemes) == ["HTTPBearer"]
    assert schemes["HTTPBearer"]["type"] == "http"
    assert schemes["HTTPBearer"]["scheme"] == "bearer"
    assert "external identity service" in schemes["HTTPBearer"]["description"]
    assert "external identity service" in schema["info"]["description"]
    assert "/auth/token" not in str(schema)
