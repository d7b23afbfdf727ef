"""Tests for the regex TypeScript/JavaScript plugin."""

from __future__ import annotations

import textwrap

from ontogen.analyzers import TypeScriptRegexPlugin
from ontogen.analyzers.typescript import parse_imports, parse_param, split_top_level

SOURCE = textwrap.dedent(
    """
    import React, { useState } from 'react';
    import type { Config } from './config';
    import * as path from 'path';
    import './styles.css';

    export interface User extends Base, Named {
      id: string;
    }

    export type UserId = string | number;

    export async function loadUser(id: UserId, opts?: Options, retries = 3): Promise<User> {
      return fetchUser(id);
    }

    export default class UserService extends BaseService implements Loader, Saver {
      private cache = new Map();
    }

    export const MAX_USERS = 10;
    export enum Role { Admin, Member }

    function internal() {}
    """
).lstrip("\n")


def test_regex_plugin_extracts_exports() -> None:
    result = TypeScriptRegexPlugin().analyze_file("src/user.ts", SOURCE)

    assert result.language == "typescript"
    assert [(symbol.name, symbol.kind) for symbol in result.exports] == [
        ("User", "interface"),
        ("UserId", "type"),
        ("loadUser", "function"),
        ("UserService", "class"),
        ("MAX_USERS", "constant"),
        ("Role", "enum"),
    ]
    assert all(symbol.exported for symbol in result.exports)
    assert "internal" not in {symbol.name for symbol in result.exports}


def test_regex_plugin_reads_function_signature() -> None:
    result = TypeScriptRegexPlugin().analyze_file("src/user.ts", SOURCE)

    (function,) = result.functions
    assert function.name == "loadUser"
    assert function.is_async is True
    assert function.return_type == "Promise<User>"
    assert [(param.name, param.type, param.optional) for param in function.params] == [
        ("id", "UserId", False),
        ("opts", "Options", True),
        ("retries", "unknown", True),
    ]
    assert function.line == 12


def test_regex_plugin_reads_heritage_and_type_definitions() -> None:
    result = TypeScriptRegexPlugin().analyze_file("src/user.ts", SOURCE)

    (service,) = result.classes
    assert service.extends == "BaseService"
    assert service.implements == ["Loader", "Saver"]
    assert service.methods == []
    (interface,) = result.interfaces
    assert interface.extends == ["Base", "Named"]
    (alias,) = result.types
    assert alias.definition == "string | number"


def test_regex_plugin_marks_javascript_files() -> None:
    result = TypeScriptRegexPlugin().analyze_file("lib/app.mjs", "export function run() {}\n")

    assert result.language == "javascript"
    assert [symbol.name for symbol in result.exports] == ["run"]


def test_parse_imports_covers_import_forms() -> None:
    imports = parse_imports(SOURCE)

    summary = [
        (entry.source, entry.specifiers, entry.is_default, entry.is_type_only)
        for entry in imports
    ]
    assert summary == [
        ("react", ["React", "useState"], True, False),
        ("./config", ["Config"], False, True),
        ("path", ["* as path"], False, False),
        ("./styles.css", [], False, False),
    ]


def test_named_import_aliases_keep_original_name() -> None:
    (entry,) = parse_imports("import { foo as bar, type Baz } from './mod';\n")

    assert entry.specifiers == ["foo", "Baz"]


def test_split_top_level_ignores_nested_separators() -> None:
    assert split_top_level("a: Map<string, number>, b: (x, y) => void, c = {k: 1, j: 2}") == [
        "a: Map<string, number>",
        "b: (x, y) => void",
        "c = {k: 1, j: 2}",
    ]


def test_parse_param_handles_modifiers_and_defaults() -> None:
    param = parse_param("private readonly store?: Store<Item>")

    assert param.name == "store"
    assert param.type == "Store<Item>"
    assert param.optional is True
    assert parse_param("count: number = 0").optional is True
