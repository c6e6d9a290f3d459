import io
import unittest

from opensearch_engine.engine import Engine
from opensearch_engine.errors import DescriptionError
from opensearch_engine.reader import DescriptionReader, load_engine
from tests.fakes import FIXTURES, FakeTransport


def _description(body: str, namespace: str = "http://a9.com/-/spec/opensearch/1.1/") -> str:
    return f'<?xml version="1.0"?>\n<OpenSearchDescription xmlns="{namespace}">{body}</OpenSearchDescription>'


class ReadFixtureTests(unittest.TestCase):
    def setUp(self) -> None:
        self.reader = DescriptionReader()

    def test_wikipedia(self) -> None:
        engine = self.reader.read(FIXTURES / "wikipedia.xml")

        self.assertFalse(self.reader.has_error)
        self.assertTrue(engine.is_valid)
        self.assertEqual("Wikipedia (en)", engine.name)
        self.assertEqual("Full text search in the English Wikipedia", engine.description)
        self.assertEqual("http://en.wikipedia.org/bar", engine.search_url_template)
        self.assertEqual("http://en.wikipedia.org/foo", engine.suggestions_url_template)
        self.assertEqual("http://en.wikipedia.org/favicon.ico", engine.image_url)
        self.assertEqual("post", engine.search_method)
        self.assertEqual("get", engine.suggestions_method)
        self.assertEqual([], engine.search_parameters)
        self.assertEqual([], engine.suggestions_parameters)
        self.assertEqual(set(), engine.tags)

    def test_suggestions_only_description_is_invalid(self) -> None:
        engine = self.reader.read(FIXTURES / "suggestions_only.xml")

        self.assertFalse(self.reader.has_error)
        self.assertFalse(engine.is_valid)
        self.assertEqual("Wikipedia (en)", engine.name)
        self.assertEqual("", engine.search_url_template)
        self.assertEqual("http://en.wikipedia.org/foo", engine.suggestions_url_template)
        self.assertTrue(engine.provides_suggestions)

    def test_parameters_and_methods(self) -> None:
        engine = self.reader.read(FIXTURES / "github.xml")

        self.assertTrue(engine.is_valid)
        self.assertEqual("GitHub", engine.name)
        self.assertEqual("Search GitHub", engine.description)
        self.assertEqual("http://github.com/search", engine.search_url_template)
        self.assertEqual("http://github.com/suggestions", engine.suggestions_url_template)
        self.assertEqual("", engine.image_url)
        self.assertEqual([("q", "{searchTerms}"), ("b", "foo")], engine.search_parameters)
        self.assertEqual([("bar", "baz")], engine.suggestions_parameters)
        self.assertEqual("get", engine.search_method)
        self.assertEqual("post", engine.suggestions_method)

    def test_first_url_of_each_type_wins(self) -> None:
        engine = self.reader.read(FIXTURES / "google.xml")

        self.assertTrue(engine.is_valid)
        self.assertEqual("Google", engine.name)
        self.assertEqual("Google Web Search", engine.description)
        self.assertEqual("http://www.google.com/search?bar", engine.search_url_template)
        self.assertEqual("http://suggestqueries.google.com/complete/foo", engine.suggestions_url_template)
        self.assertEqual("http://www.google.com/favicon.ico", engine.image_url)
        self.assertEqual([], engine.search_parameters)
        self.assertEqual([], engine.suggestions_parameters)
        self.assertEqual("get", engine.search_method)
        self.assertEqual("get", engine.suggestions_method)

    def test_tags_and_skipped_elements(self) -> None:
        engine = self.reader.read(FIXTURES / "example.xml")

        self.assertFalse(self.reader.has_error)
        self.assertTrue(engine.is_valid)
        self.assertEqual("Web Search", engine.name)
        self.assertEqual("Use Example.com to search the Web.", engine.description)
        self.assertEqual("http://example.com/", engine.search_url_template)
        self.assertEqual("", engine.suggestions_url_template)
        self.assertEqual({"example", "web"}, engine.tags)

    def test_wrong_namespace_is_an_error(self) -> None:
        engine = self.reader.read(FIXTURES / "wrong_namespace.xml")

        self.assertTrue(self.reader.has_error)
        self.assertEqual("The file is not an OpenSearch 1.1 file.", self.reader.error_string)
        self.assertFalse(engine.is_valid)
        self.assertEqual("", engine.name)
        self.assertEqual("get", engine.search_method)

    def test_wrong_root_is_an_error(self) -> None:
        engine = self.reader.read(FIXTURES / "wrong_root.xml")

        self.assertTrue(self.reader.has_error)
        self.assertIsInstance(self.reader.error, DescriptionError)
        self.assertFalse(engine.is_valid)
        self.assertEqual("", engine.search_url_template)

    def test_malformed_xml_is_an_error(self) -> None:
        engine = self.reader.read(FIXTURES / "malformed.xml")

        self.assertTrue(self.reader.has_error)
        self.assertTrue(self.reader.error_string)
        self.assertIsInstance(engine, Engine)
        self.assertFalse(engine.is_valid)

    def test_missing_file_is_an_error(self) -> None:
        engine = self.reader.read(FIXTURES / "does-not-exist.xml")

        self.assertTrue(self.reader.has_error)
        self.assertIn("does-not-exist.xml", self.reader.error_string)
        self.assertFalse(engine.is_valid)
        self.assertEqual("get", engine.search_method)
        self.assertEqual("get", engine.suggestions_method)


class ReadSourceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.reader = DescriptionReader()

    def test_reads_text_bytes_and_streams(self) -> None:
        text = _description('<ShortName>S</ShortName><Url template="http://s/"/>')
        for source in (text, text.encode("utf-8"), io.BytesIO(text.encode("utf-8"))):
            with self.subTest(source=type(source).__name__):
                engine = self.reader.read(source)
                self.assertFalse(self.reader.has_error)
                self.assertTrue(engine.is_valid)
                self.assertEqual("http://s/", engine.search_url_template)

    def test_empty_document_is_an_error(self) -> None:
        engine = self.reader.read(b"")
        self.assertTrue(self.reader.has_error)
        self.assertFalse(engine.is_valid)

    def test_error_is_cleared_on_next_read(self) -> None:
        self.reader.read(FIXTURES / "wrong_root.xml")
        self.assertTrue(self.reader.has_error)

        self.reader.read(FIXTURES / "wikipedia.xml")
        self.assertFalse(self.reader.has_error)
        self.assertEqual("", self.reader.error_string)
        self.assertIsNone(self.reader.error)

    def test_each_read_returns_a_new_engine(self) -> None:
        first = self.reader.read(FIXTURES / "wikipedia.xml")
        second = self.reader.read(FIXTURES / "wikipedia.xml")
        self.assertIsNot(first, second)
        self.assertEqual(first, second)

    def test_engine_factory_is_used(self) -> None:
        transport = FakeTransport()
        reader = DescriptionReader(lambda: Engine(transport=transport))
        engine = reader.read(FIXTURES / "wikipedia.xml")
        self.assertIs(transport, engine.transport)

    def test_element_text_is_stripped(self) -> None:
        engine = self.reader.read(_description(
            "<ShortName>\n  Padded  \n</ShortName>"
            "<Image>\n  http://example.com/icon.png\n</Image>"
            '<Url template="http://s/"/>'
        ))
        self.assertEqual("Padded", engine.name)
        self.assertEqual("http://example.com/icon.png", engine.image_url)

    def test_tags_split_on_spaces_only(self) -> None:
        engine = self.reader.read(_description("<Tags>  one   two three </Tags>"))
        self.assertEqual({"one", "two", "three"}, engine.tags)


class ReadUrlTests(unittest.TestCase):
    def setUp(self) -> None:
        self.reader = DescriptionReader()

    def test_url_without_type_is_a_search_url(self) -> None:
        engine = self.reader.read(_description('<Url template="http://s/?q={searchTerms}"/>'))
        self.assertEqual("http://s/?q={searchTerms}", engine.search_url_template)

    def test_url_without_template_does_not_block_later_urls(self) -> None:
        engine = self.reader.read(_description(
            '<Url type="text/html"><Param name="q" value="dropped"/></Url>'
            '<Url type="text/html" template="http://s/"><Param name="k" value="v"/></Url>'
        ))
        self.assertEqual("http://s/", engine.search_url_template)
        self.assertEqual([("k", "v")], engine.search_parameters)

    def test_duplicate_url_is_ignored_with_its_parameters(self) -> None:
        engine = self.reader.read(_description(
            '<Url type="application/x-suggestions+json" template="http://first/"><Param name="a" value="1"/></Url>'
            '<Url type="application/x-suggestions+json" method="post" template="http://second/">'
            '<Param name="b" value="2"/><Nested><Deeper/></Nested></Url>'
            "<ShortName>After</ShortName>"
        ))
        self.assertEqual("http://first/", engine.suggestions_url_template)
        self.assertEqual([("a", "1")], engine.suggestions_parameters)
        self.assertEqual("get", engine.suggestions_method)
        self.assertEqual("After", engine.name)

    def test_unsupported_type_is_ignored(self) -> None:
        engine = self.reader.read(_description(
            '<Url type="application/rss+xml" template="http://rss/"><Param name="a" value="1"/></Url>'
            "<ShortName>Name</ShortName>"
        ))
        self.assertEqual("", engine.search_url_template)
        self.assertEqual("", engine.suggestions_url_template)
        self.assertEqual("Name", engine.name)

    def test_unknown_method_falls_back_to_get(self) -> None:
        engine = self.reader.read(_description('<Url method="PUT" template="http://s/"/>'))
        self.assertEqual("get", engine.search_method)

    def test_parameters_keep_order_and_duplicates(self) -> None:
        engine = self.reader.read(_description(
            '<Url template="http://s/">'
            '<Param name="k" value="1"/><Parameter name="k" value="2"/><Param name="x" value=""/>'
            "</Url>"
        ))
        self.assertEqual([("k", "1"), ("k", "2")], engine.search_parameters)

    def test_unknown_children_of_root_are_not_interpreted(self) -> None:
        engine = self.reader.read(_description(
            "<Query><ShortName>Inner</ShortName><Url template='http://inner/'/></Query>"
            "<ShortName>Outer</ShortName>"
        ))
        self.assertEqual("Outer", engine.name)
        self.assertEqual("", engine.search_url_template)

    def test_foreign_namespace_children_use_local_names(self) -> None:
        engine = self.reader.read(_description(
            '<moz:SearchForm xmlns:moz="http://www.mozilla.org/2006/browser/search/">http://s/</moz:SearchForm>'
            "<ShortName>Named</ShortName>"
        ))
        self.assertEqual("Named", engine.name)


class LoadEngineTests(unittest.TestCase):
    def test_returns_engine(self) -> None:
        engine = load_engine(FIXTURES / "github.xml")
        self.assertEqual("GitHub", engine.name)

    def test_passes_engine_options(self) -> None:
        transport = FakeTransport()
        engine = load_engine(FIXTURES / "github.xml", transport=transport)
        self.assertIs(transport, engine.transport)

    def test_raises_on_structural_error(self) -> None:
        with self.assertRaises(DescriptionError):
            load_engine(FIXTURES / "wrong_namespace.xml")


if __name__ == "__main__":
    unittest.main()
