import pytest

from cpe_guesser.core.config import Settings
from cpe_guesser.core.context import create_context
from cpe_guesser.services.index_builder import IndexBuilder

SAMPLE_NAMES = [
    "cpe:2.3:a:apache:tomcat:7.0.0:*:*:*:*:*:*:*",
    "cpe:2.3:a:apache:tomcat:8.0.0:*:*:*:*:*:*:*",
    "cpe:2.3:a:apache:tomcat:8.5.0:*:*:*:*:*:*:*",
    "cpe:2.3:a:apache:tomcat:9.0.0:*:*:*:*:*:*:*",
    "cpe:2.3:a:apache:tomcat:10.0.0:*:*:*:*:*:*:*",
    "cpe:2.3:a:apache:struts:2.0.0:*:*:*:*:*:*:*",
    "cpe:2.3:a:apache:struts:2.1.0:*:*:*:*:*:*:*",
    "cpe:2.3:a:apache:struts:2.2.0:*:*:*:*:*:*:*",
    "cpe:2.3:a:apache:http_server:2.2.0:*:*:*:*:*:*:*",
    "cpe:2.3:a:apache:http_server:2.4.0:*:*:*:*:*:*:*",
    "cpe:2.3:a:apache:http_server:2.4.1:*:*:*:*:*:*:*",
    "cpe:2.3:a:microsoft:internet_explorer:10:*:*:*:*:*:*:*",
    "cpe:2.3:a:microsoft:internet_explorer:11:*:*:*:*:*:*:*",
    "cpe:2.3:a:broken",
]

TOMCAT = "cpe:2.3:a:apache:tomcat"
STRUTS = "cpe:2.3:a:apache:struts"
HTTP_SERVER = "cpe:2.3:a:apache:http_server"
INTERNET_EXPLORER = "cpe:2.3:a:microsoft:internet_explorer"


def build_dictionary_xml(names) -> bytes:
    """Minimal official-cpe-dictionary_v2.3.xml document"""
    items = "\n".join(
        f'  <cpe-item name="cpe:/legacy{i}">\n'
        f'    <title xml:lang="en-US">Item {i}</title>\n'
        f'    <cpe-23:cpe23-item name="{name}"/>\n'
        f'  </cpe-item>'
        for i, name in enumerate(names)
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<cpe-list xmlns="http://cpe.mitre.org/dictionary/2.0" '
        'xmlns:cpe-23="http://scap.nist.gov/schema/cpe-extension/2.3">\n'
        '  <generator><product_name>National Vulnerability Database (NVD)</product_name></generator>\n'
        f'{items}\n'
        '</cpe-list>\n'
    ).encode("utf-8")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL="sqlite://",
        CPE_PATH=str(tmp_path / "official-cpe-dictionary_v2.3.xml"),
        CPE_SOURCE="http://nvd.example.test/official-cpe-dictionary_v2.3.xml.gz",
        IMPORT_BATCH_SIZE=4,
    )


@pytest.fixture
def context(settings):
    ctx = create_context(settings)
    ctx.store.create_schema()
    yield ctx
    ctx.close()


@pytest.fixture
def store(context):
    return context.store


@pytest.fixture
def populated_store(store):
    IndexBuilder(store, batch_size=4).build(SAMPLE_NAMES)
    return store


@pytest.fixture
def dictionary_file(settings):
    with open(settings.CPE_PATH, "wb") as f:
        f.write(build_dictionary_xml(SAMPLE_NAMES))
    return settings.CPE_PATH
