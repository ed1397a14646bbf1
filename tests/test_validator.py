from api_contract_infer.generator.validator import (
    validate_document,
    validate_operation_ids,
    validate_path_parameters,
    validate_references,
    validate_serializable,
)


def _spec(paths: dict, schemas: dict | None = None) -> dict:
    return {
        "openapi": "3.0.0",
        "info": {"title": "t", "version": "1"},
        "paths": paths,
        "components": {"schemas": schemas if schemas is not None else {"ApiResponse": {"type": "object"}}},
    }


def _operation(operation_id: str, params: list[str] | None = None, ref: str = "ApiResponse") -> dict:
    return {
        "operationId": operation_id,
        "parameters": [{"name": name, "in": "path", "required": True} for name in params or []],
        "responses": {"200": {"content": {"application/json": {"schema": {"$ref": f"#/components/schemas/{ref}"}}}}},
    }


class TestValidateSerializable:
    def test_plain_document(self):
        assert validate_serializable(_spec({})) == {}

    def test_unserializable_value(self):
        errors = validate_serializable({"paths": {"/x": object()}})
        assert "document" in errors


class TestValidatePathParameters:
    def test_declared_parameters(self):
        spec = _spec({"/users/{id}": {"get": _operation("getUser", ["id"])}})
        assert validate_path_parameters(spec) == {}

    def test_undeclared_placeholder(self):
        spec = _spec({"/users/{id}": {"get": _operation("getUser")}})
        errors = validate_path_parameters(spec)
        assert "id" in errors["GET /users/{id}"]

    def test_parameter_not_in_path(self):
        spec = _spec({"/users": {"get": _operation("getUsers", ["id"])}})
        assert "not in path" in validate_path_parameters(spec)["GET /users"]


class TestValidateReferences:
    def test_dangling_reference(self):
        spec = _spec({"/x": {"get": _operation("x", ref="Ghost")}})
        assert validate_references(spec) == {"#/components/schemas/Ghost": "Dangling schema reference"}


class TestValidateOperationIds:
    def test_duplicates(self):
        spec = _spec({"/a": {"get": _operation("list")}, "/b": {"get": _operation("list")}})
        errors = validate_operation_ids(spec)
        assert list(errors) == ["GET /b"]
        assert "GET /a" in errors["GET /b"]


class TestValidateDocument:
    def test_clean_document(self):
        spec = _spec({"/users/{id}": {"get": _operation("getUser", ["id"]), "delete": _operation("deleteUser", ["id"])}})
        assert validate_document(spec) == {}

    def test_collects_every_problem(self):
        spec = _spec({"/users/{id}": {"get": _operation("dup", ref="Ghost")}, "/x": {"post": _operation("dup")}})
        errors = validate_document(spec)
        assert set(errors) == {"GET /users/{id}", "#/components/schemas/Ghost", "POST /x"}
