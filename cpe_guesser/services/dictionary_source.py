"""
NIST CPE Dictionary source
cpe_guesser/services/dictionary_source.py

Downloads the gzipped official CPE dictionary (XML, CPE 2.3 extension) and
streams the ``cpe23-item`` names out of it without loading the document.
"""

import gzip
import logging
import os
import shutil
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

import httpx

from cpe_guesser.core.exceptions import DictionaryError

logger = logging.getLogger(__name__)

CPE23_ITEM_TAG = "cpe23-item"
CPE_ITEM_TAG = "cpe-item"
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


def _local_name(tag: str) -> str:
    """Strip the ``{namespace}`` prefix ElementTree puts on tags"""
    return tag.rsplit("}", 1)[-1]


def gunzip(src: Union[str, Path], dst: Union[str, Path]) -> None:
    """Decompress ``src`` to ``dst``; ``dst`` is only replaced once the archive decoded fully"""
    dst = Path(dst)
    partial_path = dst.with_name(dst.name + ".part")
    try:
        with gzip.open(src, "rb") as compressed, open(partial_path, "wb") as out:
            shutil.copyfileobj(compressed, out)
        os.replace(partial_path, dst)
    except (OSError, EOFError) as e:
        raise DictionaryError(f"Failed to decompress {src}: {e}") from e
    finally:
        if partial_path.exists():
            os.remove(partial_path)


def download_dictionary(url: str, destination: Union[str, Path], timeout: float = 300.0,
                        client: Optional[httpx.Client] = None) -> Path:
    """
    Download the gzipped dictionary from ``url`` and decompress it to ``destination``.

    The response body is streamed to ``<destination>.gz`` which is removed
    afterwards, whether or not the download succeeded. An existing
    ``destination`` is left untouched unless the new archive decompresses.

    Returns:
        Path of the decompressed dictionary

    Raises:
        DictionaryError: On HTTP errors, network errors or a corrupt archive
    """
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    gz_path = destination.with_name(destination.name + ".gz")

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=timeout, follow_redirects=True)

    logger.info(f"Downloading CPE data from {url}")
    try:
        try:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                written = 0
                with open(gz_path, "wb") as f:
                    for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
            logger.info(f"Downloaded {gz_path.name} ({written} bytes)")
        except httpx.HTTPError as e:
            raise DictionaryError(f"Failed to download {url}: {e}") from e
        except OSError as e:
            raise DictionaryError(f"Failed to write {gz_path}: {e}") from e
        finally:
            if owns_client:
                client.close()

        logger.info(f"Uncompressing {gz_path}")
        gunzip(gz_path, destination)
    finally:
        if gz_path.exists():
            os.remove(gz_path)

    return destination


def iter_cpe23_names(source: Union[str, Path, BinaryIO]) -> Iterator[str]:
    """
    Yield the ``name`` attribute of every ``cpe23-item`` element in document order.

    ``source`` is a path or a binary file object. Each finished ``cpe-item``
    subtree is cleared from the tree, so memory stays flat regardless of the
    dictionary size.

    Raises:
        DictionaryError: If the document is not well-formed XML
    """
    if isinstance(source, Path):
        source = str(source)

    try:
        events = ET.iterparse(source, events=("start", "end"))
        root = None
        for event, elem in events:
            if root is None:
                root = elem
                continue
            if event != "end":
                continue

            tag = _local_name(elem.tag)
            if tag == CPE23_ITEM_TAG:
                name = elem.get("name")
                if name:
                    yield name
            elif tag == CPE_ITEM_TAG:
                root.clear()
    except ET.ParseError as e:
        raise DictionaryError(f"XML parse error: {e}") from e
    except OSError as e:
        raise DictionaryError(f"Cannot read CPE dictionary: {e}") from e
