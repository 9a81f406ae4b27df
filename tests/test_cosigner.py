import uuid

from horcrux.cosigner import (
    Cosigner,
    CosignerNonce,
    CosignerSignResponse,
    CosignerUUIDNonces,
    get_by_id,
)


class FakeCosigner(Cosigner):
    def __init__(self, cosigner_id, address="tcp://127.0.0.1:2222"):
        self._id = cosigner_id
        self._address = address

    @property
    def id(self):
        return self._id

    @property
    def address(self):
        return self._address

    def get_pub_key(self, chain_id):
        return bytes(32)

    def verify_signature(self, chain_id, payload, signature):
        return signature == payload

    def get_nonces(self, uuids):
        return [CosignerUUIDNonces(uuid=u) for u in uuids]

    def set_nonces_and_sign(self, request):
        return CosignerSignResponse(b"", None, request.sign_bytes)


def test_get_by_id_finds_cosigner():
    cosigners = [FakeCosigner(1), FakeCosigner(2), FakeCosigner(3)]
    found = get_by_id(cosigners, 2)
    assert found is cosigners[1]


def test_get_by_id_missing_returns_none():
    cosigners = [FakeCosigner(1), FakeCosigner(2)]
    assert get_by_id(cosigners, 5) is None


def test_for_destination_filters_nonces():
    u = uuid.uuid4()
    nonces = CosignerUUIDNonces(
        uuid=u,
        nonces=[
            CosignerNonce(source_id=1, destination_id=2, share=b"a"),
            CosignerNonce(source_id=1, destination_id=3, share=b"b"),
            CosignerNonce(source_id=3, destination_id=2, share=b"c"),
        ],
    )
    result = nonces.for_destination(2)
    assert result.uuid == u
    assert [n.share for n in result.nonces] == [b"a", b"c"]
    assert len(nonces.nonces) == 3


def test_for_destination_no_match_is_empty():
    nonces = CosignerUUIDNonces(
        uuid=uuid.uuid4(),
        nonces=[CosignerNonce(source_id=1, destination_id=2)],
    )
    assert nonces.for_destination(9).nonces == []