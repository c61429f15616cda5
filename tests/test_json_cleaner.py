"""Tests for permissive JSON recovery."""

from loresmith.utils.json_cleaner import clean_json, recover_arguments


class TestCleanJson:
    """Each recovery strategy, in order."""

    def test_strict_json(self) -> None:
        assert clean_json('{"a": 1}') == {"a": 1}
        assert clean_json("[1, 2]") == [1, 2]

    def test_fenced_block(self) -> None:
        text = 'Here you go:\n```json\n{"name": "Rin"}\n```\nThanks'
        assert clean_json(text) == {"name": "Rin"}

    def test_fence_without_language(self) -> None:
        assert clean_json('```\n{"name": "Rin"}\n```') == {"name": "Rin"}

    def test_balanced_span_inside_prose(self) -> None:
        text = 'Sure! {"keys": ["Avalon"], "content": "A sheath {rarely} seen."} Hope that helps.'
        assert clean_json(text) == {"keys": ["Avalon"], "content": "A sheath {rarely} seen."}

    def test_braces_in_strings_do_not_end_the_span(self) -> None:
        text = 'x {"content": "closing } brace", "n": 2} y'
        assert clean_json(text) == {"content": "closing } brace", "n": 2}

    def test_quoted_literal(self) -> None:
        assert clean_json('"hello"') == "hello"
        assert clean_json("'hello'") == "hello"

    def test_garbage_gives_empty_object(self) -> None:
        assert clean_json("not json") == {}
        assert clean_json("") == {}
        assert clean_json('{"unterminated": ') == {}


class TestRecoverArguments:
    """Argument objects for tool invocations."""

    def test_object_is_returned(self) -> None:
        assert recover_arguments('{"query": "Saber"}') == {"query": "Saber"}

    def test_non_object_values_become_empty(self) -> None:
        assert recover_arguments("[1, 2]") == {}
        assert recover_arguments("42") == {}
        assert recover_arguments('"just text"') == {}

    def test_string_holding_an_object_is_decoded(self) -> None:
        assert recover_arguments('"{\\"query\\": \\"Saber\\"}"') == {"query": "Saber"}
