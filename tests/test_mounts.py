from pathlib import Path

from api_contract_infer.parser.imports import parse_imports, resolve_specifier
from api_contract_infer.parser.mounts import COMMON_ROUTE_GROUPS, load_mounts, module_stem, parse_mounts

FIXTURES = Path(__file__).parent / "fixtures"
APP = FIXTURES / "express_app" / "src"


class TestModuleStem:
    def test_route_suffixes_removed(self):
        assert module_stem("auth.routes") == "auth"
        assert module_stem("authRoutes") == "auth"
        assert module_stem("auth-router") == "auth"
        assert module_stem("auth") == "auth"

    def test_bare_suffix_kept(self):
        assert module_stem("routes") == "routes"


class TestParseMounts:
    def test_imported_routers(self):
        content = (APP / "routes" / "index.ts").read_text()
        assert parse_mounts(content, "/api/v1") == {
            "auth": "/api/v1/auth",
            "users": "/api/v1/users",
        }

    def test_required_router(self):
        content = "app.use('/payments', require('./routes/payment.routes'));"
        assert parse_mounts(content, "/api") == {"payment": "/api/payments"}

    def test_middleware_only_use_is_ignored(self):
        assert parse_mounts("app.use(express.json());\napp.use(cors());", "/api") == {}


class TestLoadMounts:
    def test_fixture_index(self):
        mounts = load_mounts(APP / "routes", "/api/v1")
        assert mounts["auth"] == "/api/v1/auth"

    def test_no_index(self, tmp_path):
        assert load_mounts(tmp_path, "/api") == {}

    def test_index_without_mounts_uses_common_groups(self, tmp_path):
        (tmp_path / "index.ts").write_text("export const x = 1;\n")
        mounts = load_mounts(tmp_path, "/api")
        assert set(mounts) == set(COMMON_ROUTE_GROUPS)
        assert mounts["payments"] == "/api/payments"


class TestImports:
    def test_import_forms(self):
        content = (
            "import Joi from 'joi';\n"
            "import { authSchemas, userSchemas as users } from '../validators/auth';\n"
            "import * as types from '../types';\n"
            "const { validate } = require('../middleware/validate');\n"
            "const express = require('express');\n"
        )
        imports = parse_imports(content)
        assert imports["Joi"] == "joi"
        assert imports["authSchemas"] == "../validators/auth"
        assert imports["users"] == "../validators/auth"
        assert imports["types"] == "../types"
        assert imports["validate"] == "../middleware/validate"
        assert imports["express"] == "express"

    def test_resolve_relative_specifier(self):
        importer = APP / "routes" / "auth.routes.ts"
        assert resolve_specifier("../validators/auth", importer) == (APP / "validators" / "auth.ts").resolve()

    def test_package_specifier_not_resolved(self):
        assert resolve_specifier("joi", APP / "routes" / "auth.routes.ts") is None

    def test_missing_file(self):
        assert resolve_specifier("./nope", APP / "routes" / "auth.routes.ts") is None
