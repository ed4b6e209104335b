"""
Tests for front matter parsing and the named-template store.
"""

import pytest

from prompty.errors import FrontmatterError, RegistrationError
from prompty.frontmatter import PromptConfig, split_frontmatter
from prompty.storage import MemoryTemplateStore


class TestYamlFrontmatter:

    def test_split(self):
        source = (
            "---\n"
            "name: greeter\n"
            "description: Greets people\n"
            "model:\n"
            "  name: gpt-4\n"
            "  temperature: 0.7\n"
            "inputs:\n"
            "  user: {type: string}\n"
            "sample:\n"
            "  user: Ann\n"
            "---\n"
            "Hello"
        )
        config, body = split_frontmatter(source)

        assert body == "Hello"
        assert config.name == "greeter"
        assert config.description == "Greets people"
        assert config.model == {"name": "gpt-4", "temperature": 0.7}
        assert config.inputs == {"user": {"type": "string"}}
        assert config.sample == {"user": "Ann"}
        assert config.get("model.temperature") == (0.7, True)
        assert config.raw["name"] == "greeter"

    def test_no_frontmatter(self):
        assert split_frontmatter("Hello {~prompty.var name=\"x\" /~}") == (None, "Hello {~prompty.var name=\"x\" /~}")

    def test_unterminated_dashes_are_body(self):
        source = "---\nnot front matter"
        assert split_frontmatter(source) == (None, source)

    def test_empty_block(self):
        config, body = split_frontmatter("---\n\n---\nbody")

        assert config == PromptConfig()
        assert body == "body"

    def test_extra_keys_are_kept(self):
        config, _ = split_frontmatter("---\ncustom:\n  nested: 1\n---\n")
        assert config.get("custom.nested") == (1, True)

    def test_malformed_yaml(self):
        with pytest.raises(FrontmatterError, match="failed to parse YAML front matter"):
            split_frontmatter("---\nkey: [unclosed\n---\nbody")

    def test_non_mapping(self):
        with pytest.raises(FrontmatterError, match="front matter must be a mapping"):
            split_frontmatter("---\n- a\n- b\n---\nbody")

    def test_well_known_key_must_be_mapping(self):
        with pytest.raises(FrontmatterError, match="front matter key 'model' must be a mapping"):
            split_frontmatter("---\nmodel: 5\n---\nbody")


class TestJsonConfigBlock:

    def test_split(self):
        source = '{~prompty.config~}{"name": "j", "model": {"temperature": 0.5}}{~/prompty.config~}\nBody'
        config, body = split_frontmatter(source)

        assert config.name == "j"
        assert config.model == {"temperature": 0.5}
        assert body == "Body"

    def test_custom_delimiters(self):
        source = '<<prompty.config>>{"name": "c"}<</prompty.config>>Body'
        config, body = split_frontmatter(source, "<<", ">>")

        assert config.name == "c"
        assert body == "Body"

    def test_unclosed(self):
        with pytest.raises(FrontmatterError, match="config block not properly closed"):
            split_frontmatter('{~prompty.config~}{"name": "x"}')

    def test_invalid_json(self):
        with pytest.raises(FrontmatterError, match="failed to parse config block JSON"):
            split_frontmatter("{~prompty.config~}{not json}{~/prompty.config~}")

    def test_config_tag_reads_block(self, engine):
        source = '{~prompty.config~}{"model": {"temperature": 0.5}}{~/prompty.config~}\nTemp: {~prompty.config name="model.temperature" /~}'
        assert engine.execute(source) == "Temp: 0.5"


class TestFrontmatterThroughEngine:

    def test_yaml_config_tag(self, engine):
        source = '---\nmodel:\n  name: gpt-4\n---\nModel: {~prompty.config name="model.name" /~}'

        template = engine.parse(source)

        assert template.body == 'Model: {~prompty.config name="model.name" /~}'
        assert template.config.model == {"name": "gpt-4"}
        assert template.execute() == "Model: gpt-4"

    def test_malformed_frontmatter_fails_parse(self, engine):
        with pytest.raises(FrontmatterError):
            engine.parse("---\nkey: [unclosed\n---\nbody")

    def test_template_without_frontmatter(self, engine):
        template = engine.parse("plain")

        assert template.config is None
        assert template.config_data == {}


class TestMemoryTemplateStore:

    def setup_method(self):
        self.store = MemoryTemplateStore()

    def test_add_and_get(self):
        self.store.add("greeting", "Hello")
        self.store.add("farewell", "Bye")

        assert self.store.has_template("greeting")
        assert self.store.get_template_source("greeting") == "Hello"
        assert self.store.names() == ["farewell", "greeting"]
        assert len(self.store) == 2

    def test_missing(self):
        assert not self.store.has_template("nope")
        assert self.store.get_template_source("nope") is None

    def test_remove(self):
        self.store.add("greeting", "Hello")

        assert self.store.remove("greeting") is True
        assert self.store.remove("greeting") is False
        assert not self.store.has_template("greeting")

    def test_duplicate(self):
        self.store.add("greeting", "Hello")
        with pytest.raises(RegistrationError, match="template already registered: greeting"):
            self.store.add("greeting", "Hi")

    def test_invalid_names(self):
        with pytest.raises(RegistrationError, match="template name cannot be empty"):
            self.store.add("", "x")
        with pytest.raises(RegistrationError, match="reserved prompty"):
            self.store.add("prompty.base", "x")
