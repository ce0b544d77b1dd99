import pytest
from sqlalchemy.exc import IntegrityError

from museum_app.importer.pipeline.records import (
    CollectionData,
    Creator,
    DataSource,
    NormalizedNFT,
    OpenSeaRecord,
    TezosRecord,
    build_raw_record,
    is_zero_address,
)
from museum_app.models import Artist, ArtistWallet, Artwork, ImportStatus, build_nft_uid, db, normalize_address


def test_normalize_address():
    assert normalize_address("  0xABC ") == "0xabc"
    assert normalize_address("   ") is None
    assert normalize_address(None) is None


def test_build_nft_uid_keeps_contract_case():
    assert build_nft_uid(" KT1Sea ", 7) == "KT1Sea:7"


def test_artist_wallets_are_indexed():
    artist = Artist(name="Alice", wallet_addresses=[])
    assert artist.add_wallet("0xCAFE", "ethereum") is True
    assert artist.add_wallet("0xcafe", "ethereum") is False
    assert artist.add_wallet("0xcafe", "base") is True
    db.session.add(artist)
    db.session.commit()

    assert [entry["address"] for entry in artist.wallet_addresses] == ["0xcafe", "0xcafe"]
    assert Artist.find_by_wallet("0xCAFE", "ethereum").id == artist.id
    assert Artist.find_by_wallet("0xcafe", "tezos") is None
    assert Artist.find_by_name("Alice").id == artist.id
    assert db.session.query(ArtistWallet).count() == 2


def test_wallet_can_belong_to_one_artist_only():
    first = Artist(name="First", wallet_addresses=[])
    first.add_wallet("0xcafe", "ethereum")
    second = Artist(name="Second", wallet_addresses=[])
    second.add_wallet("0xcafe", "ethereum")
    db.session.add_all([first, second])

    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_artwork_unique_per_contract_and_token():
    db.session.add(Artwork(uid="0xABC:1", contract_address="0xABC", token_id="1", title="One"))
    db.session.commit()

    assert Artwork.find_by_token("0xABC", 1).title == "One"
    db.session.add(Artwork(uid="0xABC:1b", contract_address="0xABC", token_id="1", title="Dup"))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_import_status_terminal_states():
    assert ImportStatus.IMPORTED.is_terminal
    assert ImportStatus.SKIPPED.is_terminal
    assert not ImportStatus.FAILED.is_terminal


def test_data_source_aliases():
    assert DataSource.coerce("objkt") is DataSource.TEZOS
    assert DataSource.coerce(" OpenSea ") is DataSource.OPENSEA
    with pytest.raises(ValueError):
        DataSource.coerce("rarible")


def test_build_raw_record_variants():
    opensea = build_raw_record("opensea", {}, blockchain="Ethereum", contract_address=" 0xABC ", token_id=5)
    tezos = build_raw_record("teztok", {}, blockchain="tezos", contract_address=None, token_id="  ")

    assert isinstance(opensea, OpenSeaRecord)
    assert opensea.blockchain == "ethereum"
    assert opensea.nft_uid == "0xABC:5"
    assert isinstance(tezos, TezosRecord)
    assert not tezos.is_identified
    assert tezos.nft_uid.startswith("tezos:tezos:::")


def test_zero_addresses():
    assert is_zero_address(None)
    assert is_zero_address("0x0000000000000000000000000000000000000000")
    assert is_zero_address("tz1burnburnburnburnburnburnburjAYjjX")
    assert not is_zero_address("0xcafe")


def test_normalized_snapshot_round_trip_ignores_unknown_keys():
    nft = NormalizedNFT(
        title="Piece",
        creator=Creator(address="0xcafe", username="alice"),
        collection=CollectionData(slug="series", title="Series"),
        tags=["a"],
    )

    payload = nft.to_dict()
    payload["legacy_field"] = "ignored"
    payload["creator"]["legacy"] = True
    restored = NormalizedNFT.from_dict(payload)

    assert restored == nft
    assert NormalizedNFT.from_dict({"title": "x", "collection": {"title": "no slug"}}).collection is None


def test_creator_and_collection_completeness():
    assert Creator(display_name=" ", username="alice", ens_name="alice.eth").preferred_name == "alice"
    assert not Creator(address="0x1", username="alice").is_complete
    assert CollectionData(slug="s", title="t", description="d", image_url="i").is_complete
    assert not CollectionData(slug="s", description="d", image_url="i").is_complete
    assert not CollectionData(slug="s").is_complete
