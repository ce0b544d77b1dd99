from __future__ import annotations

import pytest

from museum_app.importer.errors import UnsupportedSource
from museum_app.importer.pipeline.normalizer import (
    extract_attributes,
    extract_dimensions,
    extract_tags,
    normalize,
    parse_mint_date,
)
from museum_app.importer.pipeline.records import RawRecord, build_raw_record

PLACEHOLDER_THUMBNAIL = "ipfs://QmNrhZHUaEqxhyLfqoq1mtHSipkWHeT31LNHb1QEbDHgnc"


def _opensea(payload, *, contract="0xABC", token="5"):
    return build_raw_record("opensea", payload, blockchain="ethereum", contract_address=contract, token_id=token)


def _tezos(payload, *, contract="KT1SeaSeaSeaSeaSeaSeaSeaSeaSeaSeaSea", token="7"):
    return build_raw_record("objkt", payload, blockchain="tezos", contract_address=contract, token_id=token)


def test_opensea_minimal_payload_uses_defaults():
    nft = normalize(_opensea({"identifier": "5", "contract": "0xABC", "image_url": "https://x/5.png", "creator": "0xCAFE"}))

    assert nft.title == "Untitled"
    assert nft.image_url == "https://x/5.png"
    assert nft.thumbnail_url is None
    assert nft.animation_url is None
    assert nft.mime == "image/png"
    assert nft.token_standard == "ERC721"
    assert nft.supply == 1
    assert nft.collection is None
    assert nft.creator.address == "0xcafe"
    assert nft.creator.resolution_source == "opensea"


def test_opensea_full_payload(opensea_payload):
    nft = normalize(_opensea(opensea_payload(), contract=opensea_payload()["contract"], token="42"))

    assert nft.title == "Chromie Squiggle #42"
    assert nft.image_url == "https://i.seadn.io/gcs/files/squiggle42.png"
    assert nft.thumbnail_url == "https://i.seadn.io/gcs/files/squiggle42_w500.png"
    assert nft.generator_url.startswith("https://generator.artblocks.io/")
    assert nft.animation_url == nft.generator_url
    assert nft.attributes == [
        {"trait_type": "Type", "value": "Normal"},
        {"trait_type": "Height", "value": "3"},
    ]
    assert nft.tags == ["Normal", "3"]
    assert nft.collection.slug == "chromie-squiggle-by-snowfro"
    assert nft.collection.is_generative_art is True
    assert nft.collection.is_shared_contract is False


def test_opensea_rejects_static_image_as_animation():
    nft = normalize(
        _opensea(
            {
                "image_url": "https://x/5.png",
                "animation_url": "https://cdn.example.com/preview.png",
            }
        )
    )

    assert nft.animation_url is None


def test_opensea_accepts_video_animation_and_gif_image():
    video = normalize(_opensea({"image_url": "https://x/5.png", "animation_url": "https://cdn.example.com/loop.mp4"}))
    gif = normalize(_opensea({"image_url": "https://x/5.gif"}))

    assert video.animation_url == "https://cdn.example.com/loop.mp4"
    assert video.mime == "video/mp4"
    assert gif.animation_url == "https://x/5.gif"
    assert gif.mime == "image/gif"


def test_opensea_metadata_fallbacks():
    nft = normalize(
        _opensea(
            {
                "metadata": {
                    "name": "From Metadata",
                    "description": "meta description",
                    "image": "ipfs://QmMetaImage",
                    "attributes": [{"trait_type": "Palette", "value": "Warm"}],
                }
            }
        )
    )

    assert nft.title == "From Metadata"
    assert nft.description == "meta description"
    assert nft.image_url == "ipfs://QmMetaImage"
    assert nft.attributes == [{"trait_type": "Palette", "value": "Warm"}]


def test_opensea_zero_address_creator_is_dropped():
    nft = normalize(_opensea({"creator": "0x0000000000000000000000000000000000000000"}))

    assert nft.creator is None


def test_opensea_creator_mapping_and_username():
    nft = normalize(
        _opensea(
            {
                "creator": {"address": "0xBEEF", "user": {"username": "beefcake"}},
                "creator_social_links": [{"platform": "twitter", "username": "beef"}],
            }
        )
    )

    assert nft.creator.address == "0xbeef"
    assert nft.creator.username == "beefcake"
    assert nft.creator.social_links == {"twitter": "beef"}


def test_tezos_full_payload(tezos_payload):
    nft = normalize(_tezos(tezos_payload()))

    assert nft.title == "Morning Tide"
    assert nft.blockchain == "tezos"
    assert nft.token_standard == "FA2"
    assert nft.image_url == "ipfs://QmDisplayDisplayDisplayDisplayDisplayDisp7"
    assert nft.thumbnail_url == "ipfs://QmThumbThumbThumbThumbThumbThumbThumbThumb7"
    assert nft.animation_url is None
    assert nft.mime == "image/png"
    assert nft.supply == 10
    assert nft.mint_date == "2023-03-01T12:00:00+00:00"
    assert nft.dimensions == {"width": 2000, "height": 1000}
    assert nft.tags == ["generative", "sea"]
    assert nft.attributes == [{"trait_type": "palette", "value": "blue"}]
    assert nft.creator.address == "tz1tideartisttideartisttideartist12"
    assert nft.creator.username == "tidewriter"
    assert nft.creator.social_links == {"twitter": "tidewriter"}
    assert nft.collection.slug == "KT1SeaSeaSeaSeaSeaSeaSeaSeaSeaSeaSea"
    assert nft.collection.title == "Tides"
    assert nft.collection.total_supply == 30


def test_tezos_placeholder_thumbnail_resolves_to_display_image(tezos_payload):
    payload = tezos_payload(thumbnail_uri=PLACEHOLDER_THUMBNAIL, display_uri="ipfs://QmReal")

    nft = normalize(_tezos(payload))

    assert nft.image_url == "ipfs://QmReal"
    assert nft.thumbnail_url == "ipfs://QmReal"


def test_tezos_html_artifact_becomes_animation(tezos_payload):
    payload = tezos_payload(mime="application/x-directory", artifact_uri="ipfs://QmHtmlArtifact")

    nft = normalize(_tezos(payload))

    assert nft.animation_url == "ipfs://QmHtmlArtifact"
    assert nft.mime == "text/html"


def test_tezos_wallet_row_unwraps_token(tezos_payload):
    row = {"quantity": 1, "token": tezos_payload(name="Wrapped Row")}

    nft = normalize(_tezos(row))

    assert nft.title == "Wrapped Row"


def test_unknown_record_type_raises():
    raw = RawRecord(payload={}, blockchain="ethereum", contract_address="0x1", token_id="1")

    with pytest.raises(UnsupportedSource):
        normalize(raw)


def test_attributes_are_deduplicated_case_insensitively():
    attributes = extract_attributes(
        {
            "attributes": [
                {"trait_type": "Color", "value": "Red"},
                {"trait_type": "color", "value": "red"},
                {"trait_type": "Count", "value": 2.0},
                {"trait_type": "Broken"},
                "not-a-mapping",
            ]
        }
    )

    assert attributes == [
        {"trait_type": "Color", "value": "Red"},
        {"trait_type": "Count", "value": "2"},
    ]


def test_attributes_from_mapping_source():
    attributes = extract_attributes({"properties": {"mood": "calm", "layers": 4}})

    assert attributes == [
        {"trait_type": "mood", "value": "calm"},
        {"trait_type": "layers", "value": "4"},
    ]


def test_tags_fall_back_to_first_five_attribute_values():
    attributes = [{"trait_type": f"t{i}", "value": f"v{i}"} for i in range(7)]

    assert extract_tags({}, attributes) == ["v0", "v1", "v2", "v3", "v4"]
    assert extract_tags({"tags": "a, b ,a"}, attributes) == ["a", "b"]


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"dimensions": {"width": 640, "height": "480"}}, {"width": 640, "height": 480}),
        ({"dimensions": "1920 x 1080"}, {"width": 1920, "height": 1080}),
        ({"dimensions": {"display": {"dimensions": {"width": 10, "height": 20}}}}, {"width": 10, "height": 20}),
        ({"image_details": {"width": 5, "height": 6}}, {"width": 5, "height": 6}),
        ({"dimensions": {"width": 0, "height": 480}}, None),
        ({"dimensions": "unknown"}, None),
    ],
)
def test_extract_dimensions(payload, expected):
    assert extract_dimensions(payload) == expected


def test_dimensions_from_attributes():
    attributes = [{"trait_type": "Width", "value": "800"}, {"trait_type": "Height", "value": "600"}]

    assert extract_dimensions({}, attributes) == {"width": 800, "height": 600}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2021-06-01T10:00:00Z", "2021-06-01T10:00:00+00:00"),
        ("2021-06-01T10:00:00", "2021-06-01T10:00:00+00:00"),
        (1622541600, "2021-06-01T10:00:00+00:00"),
        (1622541600000, "2021-06-01T10:00:00+00:00"),
        ("1622541600", "2021-06-01T10:00:00+00:00"),
        ("not a date", None),
        (None, None),
        ("", None),
    ],
)
def test_parse_mint_date(value, expected):
    assert parse_mint_date(value) == expected
