import gzip
import io

import httpx
import pytest

from cpe_guesser.core.exceptions import DictionaryError
from cpe_guesser.services.dictionary_source import download_dictionary, iter_cpe23_names
from tests.conftest import SAMPLE_NAMES, build_dictionary_xml


def test_iter_cpe23_names_from_file_object():
    names = list(iter_cpe23_names(io.BytesIO(build_dictionary_xml(SAMPLE_NAMES))))
    assert names == SAMPLE_NAMES


def test_iter_cpe23_names_from_path(dictionary_file):
    assert list(iter_cpe23_names(dictionary_file)) == SAMPLE_NAMES


def test_iter_cpe23_names_without_namespace():
    document = (
        b'<cpe-list>'
        b'<cpe-item name="cpe:/a:x:y"><cpe23-item name="cpe:2.3:a:x:y:1"/></cpe-item>'
        b'<cpe-item name="cpe:/a:x:z"><cpe23-item/></cpe-item>'
        b'</cpe-list>'
    )
    assert list(iter_cpe23_names(io.BytesIO(document))) == ["cpe:2.3:a:x:y:1"]


def test_iter_cpe23_names_is_lazy():
    names = iter_cpe23_names(io.BytesIO(build_dictionary_xml(SAMPLE_NAMES)))
    assert next(names) == SAMPLE_NAMES[0]


def test_iter_cpe23_names_rejects_broken_xml():
    document = build_dictionary_xml(SAMPLE_NAMES[:2])[:-20]
    with pytest.raises(DictionaryError):
        list(iter_cpe23_names(io.BytesIO(document)))


def test_iter_cpe23_names_missing_file(tmp_path):
    with pytest.raises(DictionaryError):
        list(iter_cpe23_names(tmp_path / "missing.xml"))


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_download_dictionary_decompresses(tmp_path):
    document = build_dictionary_xml(SAMPLE_NAMES)
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, content=gzip.compress(document))

    destination = tmp_path / "data" / "dictionary.xml"
    with _client(handler) as client:
        result = download_dictionary("http://nvd.example.test/dict.xml.gz", destination, client=client)

    assert result == destination
    assert destination.read_bytes() == document
    assert not (tmp_path / "data" / "dictionary.xml.gz").exists()
    assert requested == ["http://nvd.example.test/dict.xml.gz"]


def test_download_dictionary_http_error(tmp_path):
    with _client(lambda request: httpx.Response(404)) as client:
        with pytest.raises(DictionaryError):
            download_dictionary("http://nvd.example.test/missing.gz", tmp_path / "d.xml", client=client)


def test_download_dictionary_network_error(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client:
        with pytest.raises(DictionaryError):
            download_dictionary("http://nvd.example.test/d.gz", tmp_path / "d.xml", client=client)


def test_download_dictionary_corrupt_archive(tmp_path):
    destination = tmp_path / "d.xml"
    previous = build_dictionary_xml(SAMPLE_NAMES)
    destination.write_bytes(previous)

    with _client(lambda request: httpx.Response(200, content=b"not gzip at all")) as client:
        with pytest.raises(DictionaryError):
            download_dictionary("http://nvd.example.test/d.gz", destination, client=client)

    assert destination.read_bytes() == previous
    assert not (tmp_path / "d.xml.gz").exists()
    assert not (tmp_path / "d.xml.part").exists()


def test_download_dictionary_interrupted_stream(tmp_path):
    def body():
        yield gzip.compress(build_dictionary_xml(SAMPLE_NAMES))[:64]
        raise httpx.ReadError("connection reset")

    with _client(lambda request: httpx.Response(200, content=body())) as client:
        with pytest.raises(DictionaryError):
            download_dictionary("http://nvd.example.test/d.gz", tmp_path / "d.xml", client=client)

    assert not (tmp_path / "d.xml.gz").exists()
    assert not (tmp_path / "d.xml").exists()
