"""Metadata list codec (FastDFS record/field separator format)."""

from typing import Iterable, List, Mapping, Tuple, Union

from fdfs_storage.constants import DEFAULT_CHARSET, FIELD_SEPARATOR, RECORD_SEPARATOR
from fdfs_storage.types import MetadataEntry

MetadataInput = Union[Mapping[str, str], Iterable[Union[MetadataEntry, Tuple[str, str]]], None]


def normalize_metadata(meta_list: MetadataInput) -> List[MetadataEntry]:
    """
    Coerce the accepted metadata shapes into a list of MetadataEntry.

    Args:
        meta_list: Mapping, iterable of MetadataEntry / (name, value) pairs, or None

    Returns:
        List of entries in input order
    """
    if meta_list is None:
        return []
    if isinstance(meta_list, Mapping):
        return [MetadataEntry(str(k), str(v)) for k, v in meta_list.items()]

    entries = []
    for item in meta_list:
        if isinstance(item, MetadataEntry):
            entries.append(item)
        else:
            name, value = item
            entries.append(MetadataEntry(str(name), str(value)))
    return entries


def encode_metadata(meta_list: MetadataInput, charset: str = DEFAULT_CHARSET) -> bytes:
    """
    Encode metadata as ``name\\x02value`` records joined by ``\\x01``.

    Returns:
        Encoded bytes; empty when there are no entries
    """
    return RECORD_SEPARATOR.join(
        entry.name.encode(charset) + FIELD_SEPARATOR + entry.value.encode(charset)
        for entry in normalize_metadata(meta_list)
    )


def decode_metadata(payload: bytes, charset: str = DEFAULT_CHARSET) -> List[MetadataEntry]:
    """
    Decode a get-metadata response body.

    A record without a field separator decodes to an entry with an empty value.
    """
    if not payload:
        return []

    entries = []
    for record in payload.split(RECORD_SEPARATOR):
        if not record:
            continue
        name, _, value = record.partition(FIELD_SEPARATOR)
        entries.append(MetadataEntry(name.decode(charset), value.decode(charset)))
    return entries
