from pathlib import Path

import pytest

from api_contract_infer.errors import MalformedDeclarationError
from api_contract_infer.parser.base import FieldKind
from api_contract_infer.parser.controller import (
    analyze_controller,
    find_method_body,
    infer_field_kind,
    method_name_candidates,
)
from api_contract_infer.schema.node import SchemaNode

FIXTURES = Path(__file__).parent / "fixtures"
CONTROLLERS = FIXTURES / "express_app" / "src" / "controllers"


def _string() -> SchemaNode:
    return SchemaNode.primitive("string")


def _field(analysis, name: str):
    return next(item for item in analysis.input_fields if item.name == name)


DECLARED = {
    "ApiResponse": SchemaNode.object_schema(
        {"success": SchemaNode.primitive("boolean"), "data": SchemaNode.untyped(), "error": _string()},
        ["success"],
    ),
    "AuthToken": SchemaNode.object_schema(
        {"token": _string(), "expiresIn": SchemaNode.primitive("number")},
        ["token", "expiresIn"],
    ),
    "User": SchemaNode.object_schema(
        {"id": _string(), "email": _string(), "firstName": _string(), "role": _string()},
        ["id", "email", "firstName"],
    ),
}


class TestMethodLookup:
    def test_candidates(self):
        assert method_name_candidates("login", "POST") == ["login", "postLogin", "handleLogin"]
        assert "users" in method_name_candidates("getUsers", "GET")

    def test_verb_prefix_fallback(self):
        content = "class C {\n  async postLogin(req, res) {\n    return res.json({});\n  }\n}"
        name, body, params = find_method_body(content, "login", "POST")
        assert name == "postLogin"
        assert "res.json" in body
        assert params == "req, res"

    def test_wrapped_handler(self):
        content = (
            "export const login = asyncHandler(async (req, res) => {\n"
            "  const { email } = req.body;\n"
            "  res.status(201).json({ ok: true });\n"
            "});\n"
        )
        analysis = analyze_controller(content, "login")
        assert analysis.found is True
        assert [f.name for f in analysis.input_fields] == ["email"]
        assert analysis.status_codes == [201]

    def test_unterminated_body(self):
        with pytest.raises(MalformedDeclarationError):
            find_method_body("async login(req, res) { return res.json({", "login")

    def test_missing_method(self):
        analysis = analyze_controller("class C {}", "login", "POST")
        assert analysis.found is False
        assert analysis.input_fields == []


class TestRequestFields:
    def test_destructured_email_and_password(self):
        content = (
            "async login(req, res) {\n"
            "  const { email, password } = req.body;\n"
            "  return res.json({ success: true });\n"
            "}"
        )
        analysis = analyze_controller(content, "login", "POST")
        email = _field(analysis, "email")
        password = _field(analysis, "password")
        assert (email.kind, email.semantic_hint, email.required) == (FieldKind.STRING, "email", True)
        assert (password.kind, password.semantic_hint, password.required) == (FieldKind.STRING, "password", True)
        assert analysis.status_codes == [200]

    def test_defaults_and_member_access(self):
        content = (CONTROLLERS / "userController.ts").read_text()
        analysis = analyze_controller(content, "updateUser", "PUT", DECLARED)
        assert [f.name for f in analysis.input_fields] == ["firstName", "lastName", "age", "isActive", "nickname"]
        assert _field(analysis, "age").kind == FieldKind.NUMBER
        assert _field(analysis, "isActive").kind == FieldKind.BOOLEAN
        assert _field(analysis, "isActive").required is False
        assert _field(analysis, "nickname").required is False
        assert _field(analysis, "firstName").required is True

    def test_type_inference_disabled(self):
        content = "async save(req, res) { const { age, isActive } = req.body; res.json({}); }"
        analysis = analyze_controller(content, "save", type_inference=False)
        assert {f.kind for f in analysis.input_fields} == {FieldKind.STRING}

    def test_request_type_from_signature(self):
        content = (CONTROLLERS / "userController.ts").read_text()
        analysis = analyze_controller(content, "createUser", "POST", DECLARED)
        assert analysis.request_type == "CreateUserBody"

    def test_request_type_from_cast(self):
        content = "async save(req, res) { const body = req.body as SaveBody; res.json({}); }"
        assert analyze_controller(content, "save").request_type == "SaveBody"


class TestFieldKinds:
    def test_name_rules(self):
        assert infer_field_kind("userId", "") == (FieldKind.STRING, "uuid")
        assert infer_field_kind("totalAmount", "") == (FieldKind.NUMBER, None)
        assert infer_field_kind("birthDate", "") == (FieldKind.STRING, "date")
        assert infer_field_kind("hasAccess", "") == (FieldKind.BOOLEAN, None)

    def test_usage_rules(self):
        assert infer_field_kind("qty", "const n = parseInt(qty);") == (FieldKind.NUMBER, None)
        assert infer_field_kind("flag", "if (flag === true) {}") == (FieldKind.BOOLEAN, None)
        assert infer_field_kind("name", "name.trim()") == (FieldKind.STRING, None)

    def test_unknown_is_string(self):
        assert infer_field_kind("nickname", "") == (FieldKind.STRING, None)


class TestResponses:
    def test_envelope_generic_descends_to_payload(self):
        content = (CONTROLLERS / "authController.ts").read_text()
        analysis = analyze_controller(content, "login", "POST", DECLARED)
        assert analysis.status_codes == [200, 400, 500]
        assert analysis.response_type_by_status == {200: "AuthToken"}

    def test_cast_inside_envelope_literal(self):
        content = (CONTROLLERS / "userController.ts").read_text()
        analysis = analyze_controller(content, "getUserById", "GET", DECLARED)
        assert analysis.status_codes == [200, 404]
        assert analysis.response_type_by_status == {200: "User"}

    def test_structural_match(self):
        content = "async create(req, res) { res.status(201).json({ id, email, firstName }); }"
        analysis = analyze_controller(content, "create", "POST", DECLARED)
        assert analysis.response_type_by_status == {201: "User"}

    def test_unknown_payload_has_no_type(self):
        content = (CONTROLLERS / "authController.ts").read_text()
        analysis = analyze_controller(content, "logout", "POST", DECLARED)
        assert analysis.status_codes == [200]
        assert analysis.response_type_by_status == {}
