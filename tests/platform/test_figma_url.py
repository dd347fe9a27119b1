"""Tests for design-file URL parsing."""

import pytest

from namer_platform.figma_url import ParsedFigmaUrl, extract_file_key, parse_figma_url


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://www.figma.com/design/AbC123/My-File", "AbC123"),
        ("https://www.figma.com/file/xyz789/Old-Style?node-id=1-2", "xyz789"),
        ("https://figma.com/design/K3y/Name?t=abc", "K3y"),
        ("https://www.figma.com/proto/AbC123/Prototype", None),
        ("https://example.com/design/AbC123", None),
        ("", None),
    ],
)
def test_extract_file_key(url, expected):
    assert extract_file_key(url) == expected


def test_parse_converts_node_id_to_api_form():
    parsed = parse_figma_url("https://www.figma.com/design/AbC123/Name?node-id=12-345&t=x")

    assert parsed == ParsedFigmaUrl(file_key="AbC123", node_id="12:345")


def test_parse_accepts_encoded_node_id():
    parsed = parse_figma_url("https://www.figma.com/design/AbC123/Name?node-id=12%3A345")

    assert parsed.node_id == "12:345"


def test_parse_without_node_id():
    parsed = parse_figma_url("  https://www.figma.com/file/AbC123/Name  ")

    assert parsed.file_key == "AbC123"
    assert parsed.node_id is None


def test_parse_rejects_url_without_file_key():
    with pytest.raises(ValueError):
        parse_figma_url("https://www.figma.com/files/recent")
