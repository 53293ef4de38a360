"""YAML/JSON loading helpers."""

import pytest

from ads.yaml import YAMLLoadError, dumps, load, loads


class TestLoads:

    def test_yaml(self):
        assert loads("a: 1\nb: [x, y]\n") == {"a": 1, "b": ["x", "y"]}

    def test_json(self):
        assert loads('{"a": [1, 2]}', format='json') == {"a": [1, 2]}

    @pytest.mark.parametrize("text,fmt", [("a: [1", "yaml"), ("{bad", "json")])
    def test_malformed(self, text, fmt):
        with pytest.raises(YAMLLoadError) as exc_info:
            loads(text, format=fmt, source="panel.cfg")
        assert exc_info.value.source == "panel.cfg"
        assert str(exc_info.value).startswith("panel.cfg:")

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown format"):
            loads("", format="toml")

    def test_safe_loader(self):
        with pytest.raises(YAMLLoadError):
            loads("!!python/object/apply:os.system ['ls']")


class TestFiles:

    def test_suffix_picks_parser(self, tmp_path):
        (tmp_path / "graph.json").write_text('{"id": "g"}', encoding="utf-8")
        (tmp_path / "graph.yaml").write_text("id: g\n", encoding="utf-8")
        assert load(tmp_path / "graph.json") == {"id": "g"}
        assert load(str(tmp_path / "graph.yaml")) == {"id": "g"}

    def test_dumps_keeps_order(self):
        text = dumps({"z": 1, "a": 2})
        assert text.index("z:") < text.index("a:")
        assert loads(dumps({"k": [1]}, format='json'), format='json') == {"k": [1]}
