from prize_art.config import GatewayConfig
from prize_art.gateways import expand_all, expand_to_http


def test_ipfs_uri_expands_per_gateway_in_order(fake_gateways):
    assert expand_to_http("ipfs://Qm123/abc", fake_gateways) == [
        "https://gw1.test/ipfs/Qm123/abc",
        "https://gw2.test/ipfs/Qm123/abc",
        "https://gw3.test/ipfs/Qm123/abc",
    ]


def test_redundant_ipfs_segment_is_dropped(fake_gateways):
    urls = expand_to_http("ipfs://ipfs/QmHash/1.json", fake_gateways)
    assert urls[0] == "https://gw1.test/ipfs/QmHash/1.json"
    assert len(urls) == 3


def test_ipns_gateways_are_derived_from_ipfs_list(fake_gateways):
    assert fake_gateways.ipns == (
        "https://gw1.test/ipns/",
        "https://gw2.test/ipns/",
        "https://gw3.test/ipns/",
    )
    assert expand_to_http("ipns://ipns/name.eth/7", fake_gateways) == [
        "https://gw1.test/ipns/name.eth/7",
        "https://gw2.test/ipns/name.eth/7",
        "https://gw3.test/ipns/name.eth/7",
    ]


def test_arweave_scheme(fake_gateways):
    assert expand_to_http("ar://TxId123/0", fake_gateways) == ["https://ar.test/TxId123/0"]


def test_gateway_url_is_re_expanded(fake_gateways):
    urls = expand_to_http("https://somegateway.example/ipfs/QmX/meta.json", fake_gateways)
    assert urls == [
        "https://gw1.test/ipfs/QmX/meta.json",
        "https://gw2.test/ipfs/QmX/meta.json",
        "https://gw3.test/ipfs/QmX/meta.json",
    ]


def test_double_ipfs_typo_is_collapsed(fake_gateways):
    urls = expand_to_http("https://ipfs.io/ipfs/ipfs/QmX", fake_gateways)
    assert urls[0] == "https://gw1.test/ipfs/QmX"


def test_gateway_ipns_url(fake_gateways):
    urls = expand_to_http("https://dweb.link/ipns/collection.eth/3.json", fake_gateways)
    assert urls[-1] == "https://gw3.test/ipns/collection.eth/3.json"


def test_arweave_host_is_re_expanded(fake_gateways):
    assert expand_to_http("https://arweave.net/abc/1.json", fake_gateways) == ["https://ar.test/abc/1.json"]


def test_unrecognised_input_is_returned_unchanged(fake_gateways):
    assert expand_to_http("https://x.test/meta/42.json", fake_gateways) == ["https://x.test/meta/42.json"]
    assert expand_to_http("not a url at all", fake_gateways) == ["not a url at all"]
    assert expand_to_http("data:image/png;base64,AAAA", fake_gateways) == ["data:image/png;base64,AAAA"]
    assert expand_to_http("", fake_gateways) == [""]


def test_default_configuration_has_fixed_gateways():
    gateways = GatewayConfig()
    assert len(gateways.ipfs) >= 3
    assert gateways.ipfs[0] == "https://ipfs.io/ipfs/"
    assert len(gateways.arweave) >= 1


def test_expand_all_keeps_order_and_drops_repeats(fake_gateways):
    urls = expand_all(["ipfs://A", "https://gw1.test/ipfs/A", "https://x.test/1"], fake_gateways)
    assert urls == [
        "https://gw1.test/ipfs/A",
        "https://gw2.test/ipfs/A",
        "https://gw3.test/ipfs/A",
        "https://x.test/1",
    ]
