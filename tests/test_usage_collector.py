"""Tests for the Usage Collector.

Each test parses a snippet and checks which references come out, with which
kind, chain and scope.
"""
from pydeadcode.analyzer.models import ReferenceKind
from pydeadcode.analyzer.usages import UsageCollector


def collect(parser, code: str, path: str = "mod.py"):
    tree = parser.parse_source(code, path)
    return UsageCollector(path).collect(tree)


def names(refs, kind=None):
    return {r.name for r in refs if kind is None or r.kind == kind}


class TestNamesAndCalls:

    def test_attribute_chain_call(self, parser):
        """a.b.c() yields a name load, an attribute access and a call."""
        refs = collect(parser, "a.b.c()\n")

        assert [(r.name, r.kind, r.chain) for r in refs] == [
            ('a', ReferenceKind.NAME_LOAD, ('a',)),
            ('b', ReferenceKind.ATTRIBUTE_ACCESS, ('a', 'b')),
            ('c', ReferenceKind.CALL, ('a', 'b', 'c')),
        ]
        assert [r.is_member for r in refs] == [False, True, True]

    def test_bare_call(self, parser):
        refs = collect(parser, "run()\n")

        assert len(refs) == 1
        assert refs[0].kind == ReferenceKind.CALL
        assert refs[0].chain == ('run',)
        assert not refs[0].is_member

    def test_name_load_of_function_object(self, parser):
        """A function stored in a list is still a use of it."""
        refs = collect(parser, "handlers = [on_start, on_stop]\n")
        assert names(refs, ReferenceKind.NAME_LOAD) == {'on_start', 'on_stop'}

    def test_call_on_expression_receiver(self, parser):
        refs = collect(parser, "make().run()\n")
        by_name = {r.name: r for r in refs}

        assert by_name['make'].kind == ReferenceKind.CALL
        assert by_name['run'].kind == ReferenceKind.CALL
        assert by_name['run'].is_member, "run is reached through a receiver"
        assert by_name['run'].chain == ('run',)

    def test_binding_sites_are_not_references(self, parser):
        """Definition names, parameters, keyword names and assignment targets are skipped."""
        code = """def f(param, key=default_value):
    local = param
    g(key=local)
"""
        refs = collect(parser, code)
        assert names(refs) == {'default_value', 'param', 'g', 'local'}, \
            f"Unexpected references: {names(refs)}"

    def test_store_attribute_reads_receiver_only(self, parser):
        refs = collect(parser, "obj.attr = 1\n")
        assert [(r.name, r.kind) for r in refs] == [('obj', ReferenceKind.NAME_LOAD)]

    def test_augmented_assignment_reads_target(self, parser):
        refs = collect(parser, "total += 1\n")
        assert names(refs) == {'total'}


class TestScopeAttribution:

    def test_signature_parts_belong_to_enclosing_scope(self, parser):
        """Decorators, bases and defaults run in the defining scope; bodies in their own."""
        code = """@decorate
class Model(Base):
    field = compute()

    def method(self, x=DEFAULT):
        return helper()
"""
        refs = {r.name: r.scope_id for r in collect(parser, code)}

        assert refs['decorate'] == 'mod.py::<module>'
        assert refs['Base'] == 'mod.py::<module>'
        assert refs['compute'] == 'mod.py::Model'
        assert refs['DEFAULT'] == 'mod.py::Model'
        assert refs['helper'] == 'mod.py::Model.method'

    def test_redefinition_scopes_match_symbol_ids(self, parser):
        code = "def f():\n    one()\n\ndef f():\n    two()\n"
        refs = {r.name: r.scope_id for r in collect(parser, code)}

        assert refs['one'] == 'mod.py::f'
        assert refs['two'] == 'mod.py::f#2'

    def test_reference_ids_are_unique(self, parser):
        refs = collect(parser, "a()\nb()\nc = a\n")
        assert len({r.id for r in refs}) == len(refs)


class TestImports:

    def test_import_fields(self, parser):
        code = """import os.path
import numpy as np
from .models import User as U, Team
from pkg import *
"""
        refs = collect(parser, code)
        assert all(r.kind == ReferenceKind.IMPORT for r in refs)
        by_name = {r.name: r for r in refs}

        assert by_name['path'].module == 'os.path'
        assert by_name['path'].alias == 'os'
        assert by_name['path'].is_module_import

        assert by_name['numpy'].alias == 'np'
        assert by_name['numpy'].is_module_import

        assert by_name['User'].module == '.models'
        assert by_name['User'].alias == 'U'
        assert not by_name['User'].is_module_import
        assert by_name['Team'].alias == 'Team'

        assert by_name['*'].is_wildcard
        assert by_name['*'].module == 'pkg'

    def test_future_import_ignored(self, parser):
        assert collect(parser, "from __future__ import annotations\n") == []


class TestStrings:

    def test_dynamic_string_uses(self, parser):
        code = '''def f():
    """helper_doc"""
    getattr(obj, "helper")
    registry["pkg.handlers.on_save"] = 1
    message = "not an identifier!"
'''
        refs = collect(parser, code)
        dynamic = {r.name: r for r in refs if r.kind == ReferenceKind.DYNAMIC_STRING_USE}

        assert set(dynamic) == {'helper', 'on_save'}, "Docstrings and prose are not name uses"
        assert dynamic['on_save'].chain == ('pkg', 'handlers', 'on_save')

    def test_fstring_interpolations_are_loads(self, parser):
        refs = collect(parser, 'label = f"{target}"\n')

        assert names(refs, ReferenceKind.NAME_LOAD) == {'target'}
        assert not names(refs, ReferenceKind.DYNAMIC_STRING_USE)

    def test_string_annotations_are_forward_references(self, parser):
        code = 'def build(a: "models.User") -> "Optional[Team]":\n    pass\n'
        refs = collect(parser, code)

        assert {'models', 'User', 'Optional', 'Team'} <= names(refs)
        assert not names(refs, ReferenceKind.DYNAMIC_STRING_USE)
        user = next(r for r in refs if r.name == 'User')
        assert user.chain == ('models', 'User')

    def test_all_declaration_is_not_a_use(self, parser):
        refs = collect(parser, '__all__ = ["exported_fn"]\n__all__.append("other_fn")\n')
        assert refs == [], "__all__ entries only mark exports"
