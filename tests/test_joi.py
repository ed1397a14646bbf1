import json
from pathlib import Path

import pytest

from api_contract_infer.errors import SchemaConversionError
from api_contract_infer.schema.joi import JoiModule

FIXTURES = Path(__file__).parent / "fixtures"
VALIDATORS = FIXTURES / "express_app" / "src" / "validators"


def convert(source: str, name: str = "schema"):
    module = JoiModule(source)
    return module.to_json_schema(module.export(name))


class TestModuleBindings:
    def test_fixture_group_members(self):
        module = JoiModule((VALIDATORS / "auth.ts").read_text())
        assert module.member("authSchemas", "login") is not None
        assert module.member("authSchemas", "forgotPassword") is None
        assert module.export("password") is None
        assert "password" in module.bindings

    def test_commonjs_exports(self):
        source = (
            "const Joi = require('joi');\n"
            "const createUser = Joi.object({ name: Joi.string() });\n"
            "module.exports = { createUser };\n"
            "exports.ping = Joi.any();\n"
        )
        module = JoiModule(source)
        assert "Joi" in module.joi_names
        assert module.export("createUser") is not None
        assert module.export("ping") is not None

    def test_default_export_object(self):
        module = JoiModule("import Joi from 'joi';\nexport default { login: Joi.object({}) };")
        assert module.export("login") is not None

    def test_renamed_import(self):
        schema = convert("import J from '@hapi/joi';\nexport const schema = J.string();")
        assert schema == {"type": "string"}

    def test_export_clause(self):
        module = JoiModule("import Joi from 'joi';\nconst a = Joi.string();\nexport { a as name };")
        assert module.to_json_schema(module.export("name")) == {"type": "string"}


class TestConversion:
    def test_fixture_login(self):
        module = JoiModule((VALIDATORS / "auth.ts").read_text())
        schema = module.to_json_schema(module.member("authSchemas", "login"))
        assert schema == {
            "type": "object",
            "properties": {
                "email": {"type": "string", "format": "email"},
                "password": {"type": "string", "minLength": 8, "maxLength": 64},
            },
            "required": ["email", "password"],
        }

    def test_valid_with_null_and_default(self):
        module = JoiModule((VALIDATORS / "auth.ts").read_text())
        schema = module.to_json_schema(module.member("authSchemas", "register"))
        assert schema["properties"]["role"] == {"type": "string", "enum": ["admin", "user", None], "default": "user"}
        assert schema["required"] == ["email", "password"]

    def test_number_bounds_and_integer(self):
        schema = convert("import Joi from 'joi';\nexport const schema = Joi.number().integer().min(0).max(120);")
        assert schema == {"type": "integer", "minimum": 0, "maximum": 120}

    def test_array_items_and_length(self):
        schema = convert("import Joi from 'joi';\nexport const schema = Joi.array().items(Joi.string().uuid()).min(1);")
        assert schema == {"type": "array", "items": {"type": "string", "format": "uuid"}, "minItems": 1}

    def test_allow_null(self):
        schema = convert("import Joi from 'joi';\nexport const schema = Joi.string().allow(null, '');")
        assert schema == {"type": ["string", "null"]}

    def test_pattern(self):
        schema = convert("import Joi from 'joi';\nexport const schema = Joi.string().pattern(/^[a-z]+$/);")
        assert schema["pattern"] == "^[a-z]+$"

    def test_forbidden_and_optional_keys(self):
        source = (
            "import Joi from 'joi';\n"
            "export const schema = Joi.object({ id: Joi.forbidden(), note: Joi.string().optional() });"
        )
        assert convert(source) == {"type": "object", "properties": {"note": {"type": "string"}}}

    def test_keys_modifier(self):
        source = "import Joi from 'joi';\nexport const schema = Joi.object().keys({ a: Joi.boolean().required() });"
        assert convert(source) == {"type": "object", "properties": {"a": {"type": "boolean"}}, "required": ["a"]}

    def test_alternatives(self):
        source = "import Joi from 'joi';\nexport const schema = Joi.alternatives().try(Joi.string(), Joi.number());"
        assert convert(source) == {"anyOf": [{"type": "string"}, {"type": "number"}]}

    def test_description_and_example(self):
        source = "import Joi from 'joi';\nexport const schema = Joi.string().description('Name').example('Ada');"
        assert convert(source) == {"type": "string", "description": "Name", "example": "Ada"}

    def test_constant_values(self):
        source = "import Joi from 'joi';\nconst ROLES = ['a', 'b'];\nexport const schema = Joi.string().valid(...ROLES);"
        assert convert(source)["enum"] == ["a", "b"]

    def test_literal_array_default(self):
        source = "import Joi from 'joi';\nexport const schema = Joi.array().items(Joi.string()).default(['user']);"
        assert convert(source)["default"] == ["user"]

    def test_default_with_non_literal_member_dropped(self):
        source = (
            "import Joi from 'joi';\n"
            "import { Roles } from './roles';\n"
            "export const schema = Joi.array().items(Joi.string()).default([Roles.USER]);"
        )
        schema = convert(source)
        assert schema == {"type": "array", "items": {"type": "string"}}
        json.dumps(schema)

    def test_example_with_non_literal_member_dropped(self):
        source = "import Joi from 'joi';\nexport const schema = Joi.object({}).example({ at: Date.now() });"
        assert "example" not in convert(source)

    def test_unknown_modifiers_ignored(self):
        source = "import Joi from 'joi';\nexport const schema = Joi.string().trim().lowercase().someCustomRule();"
        assert convert(source) == {"type": "string"}


class TestConversionErrors:
    def test_not_a_joi_expression(self):
        with pytest.raises(SchemaConversionError):
            convert("import * as yup from 'yup';\nexport const schema = yup.string();")

    def test_unsupported_type(self):
        with pytest.raises(SchemaConversionError):
            convert("import Joi from 'joi';\nexport const schema = Joi.symbol();")

    def test_circular_binding(self):
        source = "import Joi from 'joi';\nconst a = b.required();\nconst b = a.optional();\nexport const schema = a;"
        with pytest.raises(SchemaConversionError):
            convert(source)
